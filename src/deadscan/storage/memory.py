"""In-process inspection store."""

from __future__ import annotations

from typing import Dict, Iterator, Optional

from deadscan.core.models import Inspection
from deadscan.storage.base import InspectionStore


class MemoryInspectionStore(InspectionStore):
    """Keeps records in a dict; contents are lost when the process exits."""

    def __init__(self) -> None:
        super().__init__()
        self._records: Dict[str, Inspection] = {}

    def _load(self, inspection_id: str) -> Optional[Inspection]:
        return self._records.get(inspection_id)

    def _write(self, inspection: Inspection) -> None:
        self._records[inspection.id] = inspection

    def _remove(self, inspection_id: str) -> bool:
        return self._records.pop(inspection_id, None) is not None

    def _iter(self) -> Iterator[Inspection]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)
