"""ollama-backup: enumerate, back up and restore Ollama model stores."""

from .core import ModelBackupWriter, ModelRestorer
from .inventory import ModelInventory

__all__ = ["ModelBackupWriter", "ModelInventory", "ModelRestorer"]
