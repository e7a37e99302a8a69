"""JSON file inspection store.

One document per inspection under ``<data_dir>/inspections/<id>.json``.
Writes go to a temporary file that is atomically renamed over the target,
so readers never observe a partially written record. The conditional
operations are atomic within one process only.

Documents of running inspections also name the process that wrote them, so a
later process can tell a live run from one whose process died mid-flight.
"""

from __future__ import annotations

import json
import os
import socket
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from deadscan.core.errors import FileSystemError
from deadscan.core.logging import get_logger
from deadscan.core.models import Inspection
from deadscan.storage.base import InspectionStore

LOGGER = get_logger(__name__)

STORE_DIR_NAME = "inspections"

OWNER_KEY = "owner"


def _current_owner() -> Dict[str, Any]:
    return {"pid": os.getpid(), "host": socket.gethostname()}


def _owner_alive(owner: Any) -> bool:
    """Whether the process that last wrote a running record still exists."""
    if not isinstance(owner, dict):
        return False
    pid = owner.get("pid")
    if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
        return False
    if owner.get("host") != socket.gethostname():
        # Processes on other hosts cannot be checked
        return True
    if pid == os.getpid() or os.name != "posix":
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        pass
    return True


class FileInspectionStore(InspectionStore):
    """Stores each inspection as a JSON document."""

    def __init__(self, data_dir: Path):
        super().__init__()
        self._dir = Path(data_dir) / STORE_DIR_NAME
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"Cannot create store directory {self._dir}: {e}") from e

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, inspection_id: str) -> Path:
        # Ids are generated UUIDs, but never let one escape the store directory
        if not inspection_id or "/" in inspection_id or "\\" in inspection_id \
                or inspection_id.startswith("."):
            raise FileSystemError(f"Invalid inspection id: {inspection_id!r}")
        return self._dir / f"{inspection_id}.json"

    def _read_document(self, path: Path) -> Optional[Tuple[Inspection, Dict[str, Any]]]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Inspection.from_dict(data), data
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError, TypeError) as e:
            LOGGER.warning(f"Skipping unreadable inspection document {path}: {e}")
            return None

    def _read_file(self, path: Path) -> Optional[Inspection]:
        document = self._read_document(path)
        return document[0] if document is not None else None

    def _load(self, inspection_id: str) -> Optional[Inspection]:
        try:
            path = self._path(inspection_id)
        except FileSystemError:
            return None
        return self._read_file(path)

    def _write(self, inspection: Inspection) -> None:
        target = self._path(inspection.id)
        fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{inspection.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._document(inspection), f, indent=2)
            os.replace(tmp_name, target)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise FileSystemError(f"Failed to write {target}: {e}") from e

    @staticmethod
    def _document(inspection: Inspection) -> Dict[str, Any]:
        data = inspection.to_dict()
        if inspection.is_locked:
            data[OWNER_KEY] = _current_owner()
        return data

    def _remove(self, inspection_id: str) -> bool:
        try:
            self._path(inspection_id).unlink()
            return True
        except FileNotFoundError:
            return False
        except FileSystemError:
            return False
        except OSError as e:
            raise FileSystemError(f"Failed to delete inspection {inspection_id}: {e}") from e

    def _iter(self) -> Iterator[Inspection]:
        for path in sorted(self._dir.glob("*.json")):
            inspection = self._read_file(path)
            if inspection is not None:
                yield inspection

    def find_orphaned(self) -> List[Inspection]:
        """Running records whose writing process no longer exists.

        Records without an owner, written before owners were recorded, count
        as orphaned too.
        """
        orphaned: List[Inspection] = []
        for path in sorted(self._dir.glob("*.json")):
            document = self._read_document(path)
            if document is None:
                continue
            inspection, data = document
            if inspection.is_locked and not _owner_alive(data.get(OWNER_KEY)):
                orphaned.append(inspection)
        return orphaned
