"""Inspection persistence."""

from __future__ import annotations

from pathlib import Path

from deadscan.storage.base import InspectionStore
from deadscan.storage.file import FileInspectionStore
from deadscan.storage.memory import MemoryInspectionStore


def create_store(kind: str, data_dir: Path) -> InspectionStore:
    """Build the store selected by the ``store`` config key."""
    if kind == "memory":
        return MemoryInspectionStore()
    if kind == "file":
        return FileInspectionStore(data_dir)
    raise ValueError(f"Unknown store type: {kind}")


__all__ = [
    "FileInspectionStore",
    "InspectionStore",
    "MemoryInspectionStore",
    "create_store",
]
