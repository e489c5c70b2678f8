"""Runtime settings for ollama-backup.

Values come from ``OLLAMA_BACKUP_*`` environment variables and are handed
to the engine classes explicitly by the CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["BackupSettings", "LogLevel"]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


class BackupSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OLLAMA_BACKUP_",
        case_sensitive=False,
    )

    ollama_dir: Path = Field(default_factory=lambda: Path.home() / ".ollama")
    backup_dir: Path = Path("./backup")
    log_level: LogLevel = "WARNING"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value
