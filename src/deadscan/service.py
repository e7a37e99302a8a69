"""Inspection service: the operations exposed to callers.

Request validation errors (malformed input, conflicts, missing records) are
raised from here. Everything after scheduling happens in the pipeline and is
only observable through later reads.
"""

from __future__ import annotations

import time
from typing import List, Optional

from deadscan.analysis.understand import UnderstandAnalyzer
from deadscan.config.models import DeadscanConfig
from deadscan.core.errors import (
    InspectionAlreadyExistsError,
    InspectionLockedError,
    InspectionNotFoundError,
    MalformedInputError,
    QueueClosedError,
)
from deadscan.core.git import GitDownloader
from deadscan.core.logging import get_logger
from deadscan.core.models import (
    TERMINAL_STATES,
    GitRepo,
    Inspection,
    InspectionState,
    SupportedLanguage,
)
from deadscan.core.paths import delete_directory_if_exists
from deadscan.core.streaming import StreamHandler
from deadscan.core.subprocess_runner import ProcessRunner
from deadscan.pipeline.executor import InspectionPipeline
from deadscan.pipeline.queue import ExecutionQueue
from deadscan.pipeline.state_machine import InspectionStateMachine
from deadscan.storage import InspectionStore, create_store

LOGGER = get_logger(__name__)

DEFAULT_BRANCH = "master"

INTERRUPTED_MESSAGE = (
    "Inspection was interrupted: the process running it exited before it finished"
)


def _validate_branch(branch: Optional[str]) -> str:
    if branch is None or not branch.strip():
        raise MalformedInputError("Branch must not be empty")
    return branch.strip()


class InspectionService:
    """Creates, refreshes, reads and deletes inspections."""

    def __init__(self, store: InspectionStore, pipeline: InspectionPipeline):
        self._store = store
        self._pipeline = pipeline

    @property
    def store(self) -> InspectionStore:
        return self._store

    @property
    def pipeline(self) -> InspectionPipeline:
        return self._pipeline

    def create_inspection(
        self, url: str, language: str, branch: str = DEFAULT_BRANCH
    ) -> Inspection:
        """Register a new inspection and schedule it.

        A finished inspection of the same repository and branch is restarted
        with the requested language instead of creating a second record.

        Raises:
            MalformedInputError: Empty branch, malformed URL or unknown language.
            InspectionAlreadyExistsError: The repository and branch are
                already being inspected.
            QueueClosedError: The service has been shut down.
        """
        branch = _validate_branch(branch)
        repo = GitRepo.from_url(url)
        lang = SupportedLanguage.parse(language)
        self._ensure_running()

        try:
            inspection = self._store.insert_unique(Inspection.create(repo, branch, lang.value))
        except InspectionAlreadyExistsError:
            existing = self._store.find_by_repo_and_branch(repo, branch)
            if existing is None or existing.is_locked:
                raise
            try:
                inspection = self._restart(existing.id, language=lang.value)
            except InspectionLockedError as e:
                # Someone else restarted it between the lookup and the update
                raise InspectionAlreadyExistsError(str(e)) from e
            LOGGER.info(f"Restarted inspection {inspection.id} for {repo.full_name}")
            return inspection

        LOGGER.info(
            f"Created inspection {inspection.id} for {repo.full_name} "
            f"(branch {branch}, {lang.value})"
        )
        self._pipeline.submit(inspection.id)
        return inspection

    def refresh_inspection(self, url: str, branch: str = DEFAULT_BRANCH) -> Inspection:
        """Run an existing finished inspection again.

        Raises:
            MalformedInputError: Empty branch or malformed URL.
            InspectionNotFoundError: No inspection for the repository and branch.
            InspectionLockedError: The inspection is still running.
        """
        branch = _validate_branch(branch)
        repo = GitRepo.from_url(url)
        existing = self._store.find_by_repo_and_branch(repo, branch)
        if existing is None:
            raise InspectionNotFoundError(
                f"No inspection for {repo.full_name} (branch {branch})"
            )
        return self._restart(existing.id)

    def refresh_inspection_by_id(self, inspection_id: str) -> Inspection:
        """Run the inspection with the given id again."""
        return self._restart(inspection_id)

    def _ensure_running(self) -> None:
        if not self._pipeline.is_running:
            raise QueueClosedError("Inspection pipeline is not running")

    def _restart(self, inspection_id: str, language: Optional[str] = None) -> Inspection:
        self._ensure_running()
        inspection = self._store.compare_and_set_state(
            inspection_id,
            expected=TERMINAL_STATES,
            new_state=InspectionState.ADDED,
            reset=True,
            language=language,
        )
        self._pipeline.submit(inspection.id)
        return inspection

    def recover_interrupted(self) -> List[Inspection]:
        """Fail running inspections left behind by a process that has exited.

        Without this such records would stay locked forever: they could be
        neither refreshed nor deleted.

        Returns:
            The records moved to FAILED.
        """
        recovered: List[Inspection] = []
        for orphan in self._store.find_orphaned():
            try:
                inspection = self._store.compare_and_set_state(
                    orphan.id,
                    expected={orphan.state},
                    new_state=InspectionState.FAILED,
                    failure_message=INTERRUPTED_MESSAGE,
                )
            except (InspectionNotFoundError, InspectionLockedError):
                # Deleted or picked up again since it was read
                continue
            LOGGER.warning(
                f"Inspection {orphan.id} was left {orphan.state.value} by an exited "
                f"process; marked FAILED"
            )
            recovered.append(inspection)
        return recovered

    def get_inspection(self, inspection_id: str, name_filter: Optional[str] = None) -> Inspection:
        """Return the current record, optionally narrowing its findings.

        Raises:
            InspectionNotFoundError: Unknown id.
        """
        inspection = self._store.find(inspection_id)
        if inspection is None:
            raise InspectionNotFoundError(f"No inspection with id {inspection_id}")
        if name_filter:
            return inspection.filtered(name_filter)
        return inspection

    def list_inspections(self) -> List[Inspection]:
        return self._store.find_all()

    def list_repository_inspections(self, url: str) -> List[Inspection]:
        return self._store.find_by_repo(GitRepo.from_url(url))

    def delete_inspection(self, inspection_id: str) -> Inspection:
        """Delete a finished inspection and its working directory.

        Raises:
            InspectionNotFoundError: Unknown id.
            InspectionLockedError: The inspection is still running.
            FileSystemError: The working directory could not be removed.
        """
        deleted = self._store.delete_unlocked(inspection_id)
        delete_directory_if_exists(self._pipeline.working_dir(inspection_id))
        LOGGER.info(f"Deleted inspection {inspection_id}")
        return deleted

    def wait_for_inspection(
        self,
        inspection_id: str,
        timeout: Optional[float] = None,
        poll_interval: float = 0.5,
    ) -> Inspection:
        """Poll until the inspection finishes or ``timeout`` seconds pass.

        Returns:
            The latest record; still running if the timeout expired.

        Raises:
            InspectionNotFoundError: The record disappeared.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            inspection = self.get_inspection(inspection_id)
            if inspection.state.is_terminal:
                return inspection
            if deadline is not None and time.monotonic() >= deadline:
                LOGGER.warning(
                    f"Timed out waiting for inspection {inspection_id} "
                    f"({inspection.state.value})"
                )
                return inspection
            time.sleep(poll_interval)

    def shutdown(self, wait: bool = True) -> None:
        self._pipeline.shutdown(wait=wait)

    def __enter__(self) -> "InspectionService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)


def build_service(
    config: DeadscanConfig, stream_handler: Optional[StreamHandler] = None
) -> InspectionService:
    """Wire a service and its collaborators from configuration.

    The returned service has a running pipeline; call ``shutdown`` when done.
    Inspections interrupted by an earlier process are marked FAILED first.
    """
    data_dir = config.data_path
    store = create_store(config.store, data_dir)
    runner = ProcessRunner(stream_handler=stream_handler)
    analyzer = UnderstandAnalyzer(config.analyzer, runner=runner, ignore=config.ignore)
    downloader = GitDownloader(
        git_binary=config.git.binary,
        timeout=config.git.timeout,
        depth=config.git.depth,
        stream_handler=stream_handler,
    )
    pipeline = InspectionPipeline(
        store=store,
        state_machine=InspectionStateMachine(store),
        downloader=downloader,
        analyzer=analyzer,
        queue=ExecutionQueue(max_pending=config.queue.max_pending),
        data_dir=data_dir,
        max_workers=config.scheduler.max_workers,
    )
    pipeline.start()
    service = InspectionService(store, pipeline)
    service.recover_interrupted()
    return service
