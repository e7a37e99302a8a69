"""Inspection lifecycle transitions.

Every accepted transition is persisted with exactly one store write before
the method returns, so readers observe each step individually. Rejected
transitions are logged and leave both the record and the store untouched.
"""

from __future__ import annotations

from typing import Sequence

from deadscan.core.errors import describe_error
from deadscan.core.logging import get_logger
from deadscan.core.models import (
    STATE_DESCRIPTIONS,
    DeadCodeOccurrence,
    Inspection,
    InspectionState,
)
from deadscan.storage.base import InspectionStore

LOGGER = get_logger(__name__)


class InspectionStateMachine:
    """Applies and persists state changes to inspections."""

    def __init__(self, store: InspectionStore):
        self._store = store

    def change_state(self, inspection: Inspection, new_state: InspectionState) -> bool:
        """Move a running inspection forward along the pipeline.

        Terminal states are reached through ``complete`` and ``fail`` only.

        Returns:
            True if the transition was applied and persisted.
        """
        if inspection.state.is_terminal:
            LOGGER.warning(
                f"Ignoring transition of finished inspection {inspection.id} "
                f"from {inspection.state.value} to {new_state.value}"
            )
            return False
        if new_state.is_terminal:
            LOGGER.warning(
                f"Ignoring direct transition of inspection {inspection.id} "
                f"to {new_state.value}"
            )
            return False
        if new_state.order < inspection.state.order:
            LOGGER.warning(
                f"Ignoring backward transition of inspection {inspection.id} "
                f"from {inspection.state.value} to {new_state.value}"
            )
            return False

        inspection.state = new_state
        inspection.state_description = STATE_DESCRIPTIONS[new_state]
        self._persist(inspection)
        return True

    def complete(
        self, inspection: Inspection, findings: Sequence[DeadCodeOccurrence]
    ) -> bool:
        """Finish a processing inspection with its findings."""
        if inspection.state != InspectionState.PROCESSING:
            LOGGER.warning(
                f"Cannot complete inspection {inspection.id} "
                f"in state {inspection.state.value}"
            )
            return False

        inspection.state = InspectionState.COMPLETED
        inspection.state_description = STATE_DESCRIPTIONS[InspectionState.COMPLETED]
        inspection.findings = list(findings)
        inspection.failure_message = None
        self._persist(inspection)
        return True

    def fail(self, inspection: Inspection, error: BaseException) -> bool:
        """Finish a running inspection as failed.

        A finished inspection keeps its outcome; failing it again is ignored.
        """
        message = describe_error(error)
        if inspection.state.is_terminal:
            LOGGER.warning(
                f"Ignoring failure of finished inspection {inspection.id} "
                f"({inspection.state.value}): {message}"
            )
            return False

        LOGGER.error(
            f"Inspection {inspection.id} failed in state "
            f"{inspection.state.value}: {message}"
        )
        inspection.state = InspectionState.FAILED
        inspection.state_description = STATE_DESCRIPTIONS[InspectionState.FAILED]
        inspection.failure_message = message
        self._persist(inspection)
        return True

    def _persist(self, inspection: Inspection) -> None:
        self._store.save(inspection)
        LOGGER.info(
            f"Inspection updated. Id: {inspection.id} "
            f"State: {inspection.state.value} "
            f"Description: {inspection.state_description}"
        )
