"""Orchestrator package - coordinates batch saves."""
from .batch import SaveBatchCoordinator
from .core import FileSaver, save_files
from .models import BatchSaveResult

__all__ = ["FileSaver", "SaveBatchCoordinator", "BatchSaveResult", "save_files"]
