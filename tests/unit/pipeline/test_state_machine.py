"""Tests for deadscan.pipeline.state_machine."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from deadscan.core.errors import DownloadError, ProcessExecutionError
from deadscan.core.models import (
    STATE_DESCRIPTIONS,
    DeadCodeOccurrence,
    Inspection,
    InspectionState,
)
from deadscan.pipeline.state_machine import InspectionStateMachine
from deadscan.storage import MemoryInspectionStore

FINDING = DeadCodeOccurrence("Private Method", "foo", "src/A.java", 10, 3)


@pytest.fixture
def store() -> MagicMock:
    return MagicMock(spec=MemoryInspectionStore)


@pytest.fixture
def machine(store: MagicMock) -> InspectionStateMachine:
    return InspectionStateMachine(store)


class TestChangeState:
    """Tests for change_state."""

    @pytest.mark.parametrize(
        "start,target",
        [
            (InspectionState.ADDED, InspectionState.DOWNLOADING),
            (InspectionState.DOWNLOADING, InspectionState.IN_QUEUE),
            (InspectionState.IN_QUEUE, InspectionState.PROCESSING),
        ],
    )
    def test_forward_transition_persists_once(
        self,
        machine: InspectionStateMachine,
        store: MagicMock,
        inspection: Inspection,
        start: InspectionState,
        target: InspectionState,
    ) -> None:
        inspection.state = start

        assert machine.change_state(inspection, target) is True

        assert inspection.state == target
        assert inspection.state_description == STATE_DESCRIPTIONS[target]
        store.save.assert_called_once_with(inspection)

    def test_saved_record_reflects_new_state(self, inspection: Inspection) -> None:
        store = MemoryInspectionStore()
        InspectionStateMachine(store).change_state(inspection, InspectionState.DOWNLOADING)

        assert store.find(inspection.id).state == InspectionState.DOWNLOADING

    @pytest.mark.parametrize("terminal", [InspectionState.COMPLETED, InspectionState.FAILED])
    def test_rejects_transition_of_terminal(
        self,
        machine: InspectionStateMachine,
        store: MagicMock,
        inspection: Inspection,
        terminal: InspectionState,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        inspection.state = terminal

        with caplog.at_level(logging.WARNING, logger="deadscan"):
            assert machine.change_state(inspection, InspectionState.PROCESSING) is False

        assert inspection.state == terminal
        store.save.assert_not_called()
        assert "finished inspection" in caplog.text

    def test_rejects_backward_transition(
        self, machine: InspectionStateMachine, store: MagicMock, inspection: Inspection
    ) -> None:
        inspection.state = InspectionState.PROCESSING

        assert machine.change_state(inspection, InspectionState.DOWNLOADING) is False
        assert inspection.state == InspectionState.PROCESSING
        store.save.assert_not_called()

    @pytest.mark.parametrize("terminal", [InspectionState.COMPLETED, InspectionState.FAILED])
    def test_rejects_direct_terminal_target(
        self,
        machine: InspectionStateMachine,
        store: MagicMock,
        inspection: Inspection,
        terminal: InspectionState,
    ) -> None:
        inspection.state = InspectionState.PROCESSING

        assert machine.change_state(inspection, terminal) is False
        store.save.assert_not_called()


class TestComplete:
    """Tests for complete."""

    def test_completes_processing(
        self, machine: InspectionStateMachine, store: MagicMock, inspection: Inspection
    ) -> None:
        inspection.state = InspectionState.PROCESSING

        assert machine.complete(inspection, [FINDING]) is True

        assert inspection.state == InspectionState.COMPLETED
        assert inspection.findings == [FINDING]
        assert inspection.state_description == "Inspection completed"
        store.save.assert_called_once_with(inspection)

    @pytest.mark.parametrize(
        "state",
        [
            InspectionState.ADDED,
            InspectionState.DOWNLOADING,
            InspectionState.IN_QUEUE,
            InspectionState.COMPLETED,
            InspectionState.FAILED,
        ],
    )
    def test_only_valid_from_processing(
        self,
        machine: InspectionStateMachine,
        store: MagicMock,
        inspection: Inspection,
        state: InspectionState,
    ) -> None:
        inspection.state = state

        assert machine.complete(inspection, [FINDING]) is False
        assert inspection.findings == []
        store.save.assert_not_called()


class TestFail:
    """Tests for fail."""

    @pytest.mark.parametrize(
        "state",
        [
            InspectionState.ADDED,
            InspectionState.DOWNLOADING,
            InspectionState.IN_QUEUE,
            InspectionState.PROCESSING,
        ],
    )
    def test_fails_from_any_running_state(
        self,
        machine: InspectionStateMachine,
        store: MagicMock,
        inspection: Inspection,
        state: InspectionState,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        inspection.state = state

        with caplog.at_level(logging.ERROR, logger="deadscan"):
            assert machine.fail(inspection, DownloadError("clone failed")) is True

        assert inspection.state == InspectionState.FAILED
        assert inspection.failure_message == "clone failed"
        store.save.assert_called_once_with(inspection)
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_message_includes_process_details(
        self, machine: InspectionStateMachine, inspection: Inspection
    ) -> None:
        inspection.state = InspectionState.PROCESSING
        error = ProcessExecutionError(
            "und-create exited with code 2", returncode=2, stderr="license server unreachable\n"
        )

        machine.fail(inspection, error)

        assert "und-create exited with code 2" in inspection.failure_message
        assert "license server unreachable" in inspection.failure_message

    @pytest.mark.parametrize("terminal", [InspectionState.COMPLETED, InspectionState.FAILED])
    def test_terminal_outcome_is_kept(
        self,
        machine: InspectionStateMachine,
        store: MagicMock,
        inspection: Inspection,
        terminal: InspectionState,
    ) -> None:
        inspection.state = terminal
        inspection.findings = [FINDING]

        assert machine.fail(inspection, RuntimeError("late")) is False

        assert inspection.state == terminal
        assert inspection.findings == [FINDING]
        assert inspection.failure_message is None
        store.save.assert_not_called()
