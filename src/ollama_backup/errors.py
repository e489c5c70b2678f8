"""Exceptions raised by ollama-backup."""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "BackupNotFoundError",
    "ConflictError",
    "InvalidBackupStructureError",
    "ModelNotFoundError",
    "OllamaBackupError",
    "StorageIOError",
    "StoreNotFoundError",
    "VersionAmbiguousError",
    "VersionNotFoundError",
]


class OllamaBackupError(Exception):
    """Base exception for enumerate, backup and restore operations."""


class StoreNotFoundError(OllamaBackupError, LookupError):
    """Raised when the manifests directory of the store does not exist."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"manifests directory does not exist: {path}")


class ModelNotFoundError(OllamaBackupError, LookupError):
    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"model '{model}' not found")


class VersionNotFoundError(OllamaBackupError, LookupError):
    def __init__(self, model: str, version: str | None = None) -> None:
        self.model = model
        self.version = version
        if version is None:
            message = f"no versions found for model '{model}'"
        else:
            message = f"version '{version}' not found for model '{model}'"
        super().__init__(message)


class VersionAmbiguousError(OllamaBackupError):
    """Raised when no version was given and the model has several.

    ``versions`` lists the candidates so the caller can re-invoke with
    an explicit ``model:version``.
    """

    def __init__(self, model: str, versions: list[str]) -> None:
        self.model = model
        self.versions = list(versions)
        super().__init__(
            f"multiple versions found for model '{model}' "
            f"({', '.join(self.versions)}); specify one as '{model}:<version>'"
        )


class BackupNotFoundError(OllamaBackupError, LookupError):
    def __init__(self, name: str, backup_dir: Path) -> None:
        self.name = name
        self.backup_dir = backup_dir
        super().__init__(f"backup '{name}' not found in {backup_dir}")


class InvalidBackupStructureError(OllamaBackupError):
    """Raised when a backup unit lacks ``blobs/`` or ``library/``."""


class ConflictError(OllamaBackupError):
    """Raised when a non-overwriting restore would replace existing files."""

    def __init__(self, paths: list[Path]) -> None:
        self.paths = list(paths)
        shown = ", ".join(str(p) for p in self.paths[:5])
        if len(self.paths) > 5:
            shown += f", ... ({len(self.paths) - 5} more)"
        super().__init__(
            f"{len(self.paths)} file(s) already exist in the store: {shown}; "
            "use --overwrite to force restore"
        )


class StorageIOError(OllamaBackupError):
    """Wraps a filesystem or archive failure with the operation and path."""

    def __init__(self, operation: str, path: Path | str, cause: Exception) -> None:
        self.operation = operation
        self.path = Path(path)
        super().__init__(f"failed to {operation} {path}: {cause}")
