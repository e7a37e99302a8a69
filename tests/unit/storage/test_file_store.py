"""Tests specific to deadscan.storage.file."""

from __future__ import annotations

import json
import os
import socket
from pathlib import Path

import pytest

from deadscan.core.models import DeadCodeOccurrence, Inspection, InspectionState
from deadscan.storage.file import OWNER_KEY, STORE_DIR_NAME, FileInspectionStore


def _set_owner(store: FileInspectionStore, inspection_id: str, owner) -> None:
    path = store.directory / f"{inspection_id}.json"
    data = json.loads(path.read_text())
    if owner is None:
        data.pop(OWNER_KEY, None)
    else:
        data[OWNER_KEY] = owner
    path.write_text(json.dumps(data))


class TestFileInspectionStore:
    """Tests for the JSON document store."""

    def test_one_document_per_inspection(self, tmp_path: Path, inspection: Inspection) -> None:
        store = FileInspectionStore(tmp_path)
        store.save(inspection)

        document = tmp_path / STORE_DIR_NAME / f"{inspection.id}.json"
        assert document.is_file()
        data = json.loads(document.read_text())
        assert data["state"] == "ADDED"
        assert data["git_repo"]["name"] == "widgets"

    def test_survives_reopen(self, tmp_path: Path, inspection: Inspection) -> None:
        inspection.state = InspectionState.COMPLETED
        inspection.findings = [DeadCodeOccurrence("Parameter", "p", "src/A.java", 3, None)]
        FileInspectionStore(tmp_path).save(inspection)

        reopened = FileInspectionStore(tmp_path)

        assert reopened.find(inspection.id) == inspection

    def test_no_temporary_files_left(self, tmp_path: Path, inspection: Inspection) -> None:
        store = FileInspectionStore(tmp_path)
        for _ in range(3):
            store.save(inspection)

        assert [p.name for p in (tmp_path / STORE_DIR_NAME).iterdir()] == [f"{inspection.id}.json"]

    def test_unreadable_documents_are_skipped(self, tmp_path: Path, inspection: Inspection) -> None:
        store = FileInspectionStore(tmp_path)
        store.save(inspection)
        (tmp_path / STORE_DIR_NAME / "broken.json").write_text("{not json")

        assert [i.id for i in store.find_all()] == [inspection.id]
        assert store.find("broken") is None

    @pytest.mark.parametrize("bad_id", ["../escape", ".hidden", ""])
    def test_rejects_path_like_ids(self, tmp_path: Path, bad_id: str) -> None:
        store = FileInspectionStore(tmp_path)

        assert store.find(bad_id) is None
        assert store.delete(bad_id) is False


class TestOrphanedInspections:
    """Running records whose writing process has gone away."""

    def test_running_records_name_their_process(
        self, tmp_path: Path, inspection: Inspection
    ) -> None:
        store = FileInspectionStore(tmp_path)
        inspection.state = InspectionState.PROCESSING
        store.save(inspection)

        data = json.loads((store.directory / f"{inspection.id}.json").read_text())

        assert data[OWNER_KEY] == {"pid": os.getpid(), "host": socket.gethostname()}
        assert store.find_orphaned() == []

    def test_finished_records_have_no_owner(self, tmp_path: Path, inspection: Inspection) -> None:
        store = FileInspectionStore(tmp_path)
        inspection.state = InspectionState.FAILED
        store.save(inspection)

        data = json.loads((store.directory / f"{inspection.id}.json").read_text())

        assert OWNER_KEY not in data

    @pytest.mark.skipif(os.name != "posix", reason="process liveness check is POSIX only")
    def test_exited_owner_is_orphaned(
        self, tmp_path: Path, inspection: Inspection, exited_pid: int
    ) -> None:
        store = FileInspectionStore(tmp_path)
        inspection.state = InspectionState.DOWNLOADING
        store.save(inspection)
        _set_owner(store, inspection.id, {"pid": exited_pid, "host": socket.gethostname()})

        assert [i.id for i in store.find_orphaned()] == [inspection.id]

    def test_missing_owner_is_orphaned(self, tmp_path: Path, inspection: Inspection) -> None:
        store = FileInspectionStore(tmp_path)
        inspection.state = InspectionState.IN_QUEUE
        store.save(inspection)
        _set_owner(store, inspection.id, None)

        assert [i.id for i in store.find_orphaned()] == [inspection.id]

    def test_owner_on_other_host_is_trusted(
        self, tmp_path: Path, inspection: Inspection, exited_pid: int
    ) -> None:
        store = FileInspectionStore(tmp_path)
        inspection.state = InspectionState.PROCESSING
        store.save(inspection)
        _set_owner(store, inspection.id, {"pid": exited_pid, "host": "build-agent-7.invalid"})

        assert store.find_orphaned() == []

    def test_finished_records_are_never_orphaned(
        self, tmp_path: Path, inspection: Inspection
    ) -> None:
        store = FileInspectionStore(tmp_path)
        inspection.state = InspectionState.COMPLETED
        store.save(inspection)

        assert store.find_orphaned() == []
