"""Tests for deadscan.pipeline.executor."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from deadscan.analysis.understand import UnderstandAnalyzer
from deadscan.config.models import AnalyzerConfig
from deadscan.core.errors import DownloadError, ProcessExecutionError, QueueClosedError
from deadscan.core.models import (
    DeadCodeOccurrence,
    GitRepo,
    Inspection,
    InspectionState,
)
from deadscan.core.paths import canonical_path
from deadscan.pipeline import ExecutionQueue, InspectionPipeline, InspectionStateMachine
from deadscan.storage import MemoryInspectionStore

REPORT = (
    "Private Method&foo&{root}/src/A.java&10&3\n"
    "Parameter&bar.lambda$1&{root}/src/B.java&5&1\n"
)


class RecordingStore(MemoryInspectionStore):
    """Memory store that remembers every state it persisted."""

    def __init__(self) -> None:
        super().__init__()
        self.history: List[Tuple[str, InspectionState]] = []

    def _write(self, inspection: Inspection) -> None:
        self.history.append((inspection.id, inspection.state))
        super()._write(inspection)

    def states(self, inspection_id: str) -> List[InspectionState]:
        return [state for i, state in self.history if i == inspection_id]


def fake_und(report: str = REPORT):
    """Runner side effect: database build prints nothing, uperl prints ``report``."""

    def run(command, args=(), cwd=None, timeout=None, tool_name=None) -> str:
        if args and args[0] == "uperl":
            return report.format(root=canonical_path(Path(cwd) / "widgets"))
        return ""

    return run


class SlowAnalyzer:
    """Analyzer stand-in that tracks how many runs overlap."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0
        self.lock = threading.Lock()

    def analyze(self, inspection_dir: Path, repo_name: str, language: str) -> List[DeadCodeOccurrence]:
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.02)
        with self.lock:
            self.active -= 1
        return []


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def runner() -> MagicMock:
    runner = MagicMock()
    runner.run.side_effect = fake_und()
    return runner


def _pipeline(
    store: RecordingStore,
    downloader,
    data_dir: Path,
    runner: Optional[MagicMock] = None,
    analyzer=None,
    queue: Optional[ExecutionQueue] = None,
) -> InspectionPipeline:
    if analyzer is None:
        analyzer = UnderstandAnalyzer(AnalyzerConfig(scitools_dir=str(data_dir)), runner=runner)
    return InspectionPipeline(
        store=store,
        state_machine=InspectionStateMachine(store),
        downloader=downloader,
        analyzer=analyzer,
        queue=queue or ExecutionQueue(),
        data_dir=data_dir,
        max_workers=2,
    )


def _run(pipeline: InspectionPipeline, inspection_id: str) -> None:
    pipeline.submit(inspection_id).result(timeout=30)
    pipeline.queue.join()


class TestInspectCode:
    """End-to-end runs through the pipeline stages."""

    def test_successful_run(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, runner: MagicMock,
        inspection: Inspection,
    ) -> None:
        store.insert_unique(inspection)

        with _pipeline(store, fake_downloader, tmp_path, runner=runner) as pipeline:
            _run(pipeline, inspection.id)

        assert store.states(inspection.id) == [
            InspectionState.ADDED,
            InspectionState.DOWNLOADING,
            InspectionState.IN_QUEUE,
            InspectionState.PROCESSING,
            InspectionState.COMPLETED,
        ]
        result = store.find(inspection.id)
        assert result.findings == [
            DeadCodeOccurrence("Private Method", "foo", "src/A.java", 10, 3)
        ]
        assert result.failure_message is None
        repo, branch, destination = fake_downloader.calls[0]
        assert (repo.name, branch) == ("widgets", "master")
        assert destination == tmp_path / inspection.id / "widgets"

    def test_download_failure(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, runner: MagicMock,
        inspection: Inspection,
    ) -> None:
        fake_downloader.error = DownloadError("Failed to clone: repository not found")
        store.insert_unique(inspection)

        with _pipeline(store, fake_downloader, tmp_path, runner=runner) as pipeline:
            _run(pipeline, inspection.id)

        assert store.states(inspection.id) == [
            InspectionState.ADDED,
            InspectionState.DOWNLOADING,
            InspectionState.FAILED,
        ]
        assert "repository not found" in store.find(inspection.id).failure_message
        runner.run.assert_not_called()

    def test_process_failure(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, inspection: Inspection
    ) -> None:
        runner = MagicMock()
        runner.run.side_effect = ProcessExecutionError(
            "und-create timed out after 600 seconds", timed_out=True
        )
        store.insert_unique(inspection)

        with _pipeline(store, fake_downloader, tmp_path, runner=runner) as pipeline:
            _run(pipeline, inspection.id)

        assert store.states(inspection.id)[-2:] == [
            InspectionState.PROCESSING,
            InspectionState.FAILED,
        ]
        assert store.find(inspection.id).failure_message == "und-create timed out after 600 seconds"

    def test_unexpected_error_still_fails_record(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, inspection: Inspection
    ) -> None:
        analyzer = MagicMock()
        analyzer.analyze.side_effect = KeyError("kind")
        store.insert_unique(inspection)

        with _pipeline(store, fake_downloader, tmp_path, analyzer=analyzer) as pipeline:
            _run(pipeline, inspection.id)

        result = store.find(inspection.id)
        assert result.state == InspectionState.FAILED
        assert result.failure_message.startswith("KeyError")

    def test_closed_queue_fails_record(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, runner: MagicMock,
        inspection: Inspection,
    ) -> None:
        store.insert_unique(inspection)
        pipeline = _pipeline(store, fake_downloader, tmp_path, runner=runner)

        # queue never started
        pipeline.inspect_code(inspection.id)

        assert store.states(inspection.id)[-2:] == [
            InspectionState.IN_QUEUE,
            InspectionState.FAILED,
        ]
        pipeline.shutdown()

    def test_stale_working_directory_is_removed(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, runner: MagicMock,
        inspection: Inspection,
    ) -> None:
        stale = tmp_path / inspection.id / "widgets" / "leftover.txt"
        stale.parent.mkdir(parents=True)
        stale.write_text("from a previous run")
        store.insert_unique(inspection)

        with _pipeline(store, fake_downloader, tmp_path, runner=runner) as pipeline:
            _run(pipeline, inspection.id)

        assert not stale.exists()
        assert (tmp_path / inspection.id / "widgets").is_dir()

    def test_missing_record_is_abandoned(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, runner: MagicMock
    ) -> None:
        with _pipeline(store, fake_downloader, tmp_path, runner=runner) as pipeline:
            _run(pipeline, "does-not-exist")

        assert fake_downloader.calls == []
        assert store.history == []

    def test_finished_record_is_not_rerun(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, runner: MagicMock,
        inspection: Inspection,
    ) -> None:
        inspection.state = InspectionState.COMPLETED
        store.save(inspection)

        with _pipeline(store, fake_downloader, tmp_path, runner=runner) as pipeline:
            _run(pipeline, inspection.id)

        assert fake_downloader.calls == []
        assert store.states(inspection.id) == [InspectionState.COMPLETED]

    def test_analysis_runs_are_serialized(
        self, tmp_path: Path, store: RecordingStore, fake_downloader, git_repo: GitRepo
    ) -> None:
        analyzer = SlowAnalyzer()
        ids = []
        for i in range(6):
            inspection = Inspection.create(git_repo, f"branch-{i}", "Java")
            store.insert_unique(inspection)
            ids.append(inspection.id)

        with _pipeline(store, fake_downloader, tmp_path, analyzer=analyzer) as pipeline:
            futures = [pipeline.submit(i) for i in ids]
            for future in futures:
                future.result(timeout=30)
            pipeline.queue.join()

        assert analyzer.peak == 1
        assert all(store.find(i).state == InspectionState.COMPLETED for i in ids)

    def test_submit_returns_immediately(
        self, tmp_path: Path, store: RecordingStore, inspection: Inspection
    ) -> None:
        release = threading.Event()

        class BlockingDownloader:
            def download(self, repo, branch, destination):
                release.wait(10)
                destination.mkdir(parents=True, exist_ok=True)

        store.insert_unique(inspection)
        analyzer = SlowAnalyzer()

        with _pipeline(store, BlockingDownloader(), tmp_path, analyzer=analyzer) as pipeline:
            started = time.monotonic()
            future = pipeline.submit(inspection.id)
            assert time.monotonic() - started < 1
            assert not future.done()
            release.set()
            future.result(timeout=30)
            pipeline.queue.join()

        assert store.find(inspection.id).state == InspectionState.COMPLETED


class TestShutdown:
    """Scheduling after the pipeline has shut down."""

    def test_submit_fails_the_inspection(
        self, store: RecordingStore, fake_downloader, runner: MagicMock,
        inspection: Inspection, tmp_path: Path,
    ) -> None:
        store.insert_unique(inspection)
        pipeline = _pipeline(store, fake_downloader, tmp_path, runner=runner)
        pipeline.start()
        assert pipeline.is_running

        pipeline.shutdown()

        assert not pipeline.is_running
        with pytest.raises(QueueClosedError, match="shut down"):
            pipeline.submit(inspection.id)
        record = store.find(inspection.id)
        assert record.state == InspectionState.FAILED
        assert "shut down" in record.failure_message
        assert not record.is_locked

    def test_submit_for_missing_record_still_raises(
        self, store: RecordingStore, fake_downloader, tmp_path: Path
    ) -> None:
        pipeline = _pipeline(store, fake_downloader, tmp_path)
        pipeline.start()
        pipeline.shutdown()

        with pytest.raises(QueueClosedError):
            pipeline.submit("missing")
