"""Pipeline executor for driving inspections end to end."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from deadscan.analysis.understand import UnderstandAnalyzer
from deadscan.core.errors import (
    DownloadError,
    ExecutionQueueError,
    FileSystemError,
    ProcessExecutionError,
    QueueClosedError,
)
from deadscan.core.git import RepositoryDownloader
from deadscan.core.logging import get_logger
from deadscan.core.models import Inspection, InspectionState
from deadscan.core.paths import delete_directory_if_exists, inspection_dir
from deadscan.pipeline.queue import ExecutionQueue
from deadscan.pipeline.state_machine import InspectionStateMachine
from deadscan.storage.base import InspectionStore

LOGGER = get_logger(__name__)


class InspectionPipeline:
    """Orchestrates the inspection stages.

    Pipeline stages:
    1. Cleanup of any stale working directory (ADDED)
    2. Repository clone (DOWNLOADING), on the scheduler thread pool
    3. Hand-off to the execution queue (IN_QUEUE)
    4. Database build, unused code script and report parsing (PROCESSING),
       on the single queue worker
    5. COMPLETED with findings, or FAILED at any stage

    Stage errors are recorded on the inspection and never propagate.
    """

    def __init__(
        self,
        store: InspectionStore,
        state_machine: InspectionStateMachine,
        downloader: RepositoryDownloader,
        analyzer: UnderstandAnalyzer,
        queue: ExecutionQueue,
        data_dir: Path,
        max_workers: int = 4,
    ) -> None:
        """Initialize the pipeline.

        Args:
            store: Inspection records.
            state_machine: Applies and persists transitions.
            downloader: Clones repositories.
            analyzer: Runs the analysis tool.
            queue: Serializes analysis runs.
            data_dir: Parent of the per-inspection working directories.
            max_workers: Concurrent scheduler tasks (downloads).
        """
        self._store = store
        self._state_machine = state_machine
        self._downloader = downloader
        self._analyzer = analyzer
        self._queue = queue
        self._data_dir = Path(data_dir)
        self._scheduler = ThreadPoolExecutor(
            max_workers=max(max_workers, 1),
            thread_name_prefix="deadscan-pipeline",
        )
        self._closed = False

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def queue(self) -> ExecutionQueue:
        return self._queue

    @property
    def is_running(self) -> bool:
        """True between ``start`` and ``shutdown``."""
        return not self._closed and self._queue.is_running

    def working_dir(self, inspection_id: str) -> Path:
        return inspection_dir(self._data_dir, inspection_id)

    def start(self) -> None:
        self._queue.start()

    def submit(self, inspection_id: str) -> "Future[None]":
        """Schedule an inspection run and return without waiting for it.

        Raises:
            QueueClosedError: The pipeline has been shut down. The inspection
                is marked FAILED so it does not stay locked.
        """
        LOGGER.debug(f"Scheduling inspection {inspection_id}")
        try:
            return self._scheduler.submit(self.inspect_code, inspection_id)
        except RuntimeError as e:
            error = QueueClosedError(
                f"Cannot schedule inspection {inspection_id}: the pipeline is shut down"
            )
            inspection = self._store.find(inspection_id)
            if inspection is not None:
                self._state_machine.fail(inspection, error)
            raise error from e

    def shutdown(self, wait: bool = True) -> None:
        """Stop scheduling, then let the queue drain and stop."""
        self._closed = True
        self._scheduler.shutdown(wait=wait)
        self._queue.stop(wait=wait)

    def inspect_code(self, inspection_id: str) -> None:
        """Run the download stage and queue the analysis stage."""
        inspection = self._store.find(inspection_id)
        if inspection is None:
            LOGGER.warning(f"Inspection {inspection_id} no longer exists, abandoning run")
            return

        work_dir = self.working_dir(inspection.id)
        try:
            delete_directory_if_exists(work_dir)

            if not self._state_machine.change_state(inspection, InspectionState.DOWNLOADING):
                return
            self._downloader.download(
                inspection.git_repo, inspection.branch, work_dir / inspection.git_repo.name
            )

            if not self._state_machine.change_state(inspection, InspectionState.IN_QUEUE):
                return
            self._queue.submit(lambda: self._process(inspection, work_dir))
            LOGGER.debug(
                f"Inspection {inspection.id} queued, {self._queue.pending} job(s) waiting"
            )
        except (DownloadError, FileSystemError, ExecutionQueueError) as e:
            self._state_machine.fail(inspection, e)
        except Exception as e:
            LOGGER.exception(f"Unexpected error while preparing inspection {inspection.id}")
            self._state_machine.fail(inspection, e)

    def _process(self, inspection: Inspection, work_dir: Path) -> None:
        try:
            if not self._state_machine.change_state(inspection, InspectionState.PROCESSING):
                return
            findings = self._analyzer.analyze(
                work_dir, inspection.git_repo.name, inspection.language
            )
            self._state_machine.complete(inspection, findings)
        except (ProcessExecutionError, FileSystemError) as e:
            self._state_machine.fail(inspection, e)
        except Exception as e:
            LOGGER.exception(f"Unexpected error while analysing inspection {inspection.id}")
            self._state_machine.fail(inspection, e)

    def __enter__(self) -> "InspectionPipeline":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)
