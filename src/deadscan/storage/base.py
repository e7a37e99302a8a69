"""Inspection store interface.

Besides plain persistence the store owns the atomic operations that guard
the lifecycle: "is it locked?" is never answered by a read followed by a
separate write. ``insert_unique``, ``compare_and_set_state`` and
``delete_unlocked`` check and mutate under one lock.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Collection, Iterator, List, Optional

from deadscan.core.errors import (
    InspectionAlreadyExistsError,
    InspectionLockedError,
    InspectionNotFoundError,
)
from deadscan.core.logging import get_logger
from deadscan.core.models import (
    STATE_DESCRIPTIONS,
    GitRepo,
    Inspection,
    InspectionState,
)

LOGGER = get_logger(__name__)


class InspectionStore(ABC):
    """Durable backing for Inspection records.

    Subclasses implement the raw ``_load``/``_write``/``_remove``/``_iter``
    primitives; this class supplies locking, copying and the atomic
    conditional operations on top of them. Records handed out are copies.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    # Backend primitives, always called with the lock held

    @abstractmethod
    def _load(self, inspection_id: str) -> Optional[Inspection]:
        """Read one record."""

    @abstractmethod
    def _write(self, inspection: Inspection) -> None:
        """Insert or replace one record."""

    @abstractmethod
    def _remove(self, inspection_id: str) -> bool:
        """Delete one record, returning whether it existed."""

    @abstractmethod
    def _iter(self) -> Iterator[Inspection]:
        """Iterate over all records."""

    # Plain persistence

    def save(self, inspection: Inspection) -> None:
        with self._lock:
            self._write(inspection.copy())

    def find(self, inspection_id: str) -> Optional[Inspection]:
        with self._lock:
            found = self._load(inspection_id)
            return found.copy() if found else None

    def delete(self, inspection_id: str) -> bool:
        with self._lock:
            return self._remove(inspection_id)

    def find_all(self) -> List[Inspection]:
        with self._lock:
            records = [i.copy() for i in self._iter()]
        return sorted(records, key=lambda i: i.created_at)

    def find_by_repo(self, repo: GitRepo) -> List[Inspection]:
        return [i for i in self.find_all() if i.git_repo.key == repo.key]

    def find_by_repo_and_branch(self, repo: GitRepo, branch: str) -> Optional[Inspection]:
        with self._lock:
            found = self._find_by_repo_and_branch(repo, branch)
            return found.copy() if found else None

    def exists_by_repo_and_branch(self, repo: GitRepo, branch: str) -> bool:
        with self._lock:
            return self._find_by_repo_and_branch(repo, branch) is not None

    def find_orphaned(self) -> List[Inspection]:
        """Running records that no live process is working on.

        Records that cannot outlive their process never become orphaned.
        """
        return []

    def _find_by_repo_and_branch(self, repo: GitRepo, branch: str) -> Optional[Inspection]:
        for inspection in self._iter():
            if inspection.git_repo.key == repo.key and inspection.branch == branch:
                return inspection
        return None

    # Atomic conditional operations

    def insert_unique(self, inspection: Inspection) -> Inspection:
        """Insert a record unless one exists for the same repository and branch.

        Raises:
            InspectionAlreadyExistsError: If such a record exists.
        """
        with self._lock:
            existing = self._find_by_repo_and_branch(inspection.git_repo, inspection.branch)
            if existing is not None:
                raise InspectionAlreadyExistsError(
                    f"Inspection {existing.id} already exists for "
                    f"{inspection.git_repo.full_name} (branch {inspection.branch})"
                )
            self._write(inspection.copy())
            return inspection.copy()

    def compare_and_set_state(
        self,
        inspection_id: str,
        expected: Collection[InspectionState],
        new_state: InspectionState,
        description: Optional[str] = None,
        reset: bool = False,
        language: Optional[str] = None,
        failure_message: Optional[str] = None,
    ) -> Inspection:
        """Move a record to ``new_state`` only if its state is in ``expected``.

        Args:
            inspection_id: Record to update.
            expected: States the record must currently be in.
            new_state: Target state.
            description: State description (default: the state's default).
            reset: Clear findings and failure message and restamp creation time.
            language: Optionally replace the requested language.
            failure_message: Optionally record why the inspection failed.

        Returns:
            Copy of the updated record.

        Raises:
            InspectionNotFoundError: If no such record exists.
            InspectionLockedError: If the record is in another state.
        """
        with self._lock:
            inspection = self._load(inspection_id)
            if inspection is None:
                raise InspectionNotFoundError(f"No inspection with id {inspection_id}")
            if inspection.state not in expected:
                raise InspectionLockedError(
                    f"Inspection {inspection_id} is {inspection.state.value}"
                )
            if reset:
                inspection.reset()
            if language is not None:
                inspection.language = language
            if failure_message is not None:
                inspection.failure_message = failure_message
            inspection.state = new_state
            inspection.state_description = description or STATE_DESCRIPTIONS[new_state]
            self._write(inspection)
            return inspection.copy()

    def delete_unlocked(self, inspection_id: str) -> Inspection:
        """Delete a record only if it has finished.

        Returns:
            The deleted record.

        Raises:
            InspectionNotFoundError: If no such record exists.
            InspectionLockedError: If the record is still running.
        """
        with self._lock:
            inspection = self._load(inspection_id)
            if inspection is None:
                raise InspectionNotFoundError(f"No inspection with id {inspection_id}")
            if inspection.is_locked:
                raise InspectionLockedError(
                    f"Inspection {inspection_id} is {inspection.state.value}"
                )
            self._remove(inspection_id)
            return inspection.copy()
