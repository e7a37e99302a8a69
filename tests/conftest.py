"""Shared fixtures for deadscan tests."""

from __future__ import annotations

import logging
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

import pytest

from deadscan.core.git import RepositoryDownloader
from deadscan.core.logging import ROOT_LOGGER_NAME
from deadscan.core.models import GitRepo, Inspection

REPO_URL = "https://github.com/acme/widgets"


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point DEADSCAN_HOME at an empty directory so no real global config is read."""
    home = tmp_path_factory.mktemp("deadscan-home")
    monkeypatch.setenv("DEADSCAN_HOME", str(home))
    return home


@pytest.fixture(autouse=True)
def reset_deadscan_logger():
    """Undo configure_logging() so caplog keeps working across tests."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_deadscan_handler", False):
            logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


class FakeDownloader(RepositoryDownloader):
    """Creates the destination directory instead of cloning."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[tuple] = []

    def download(self, repo: GitRepo, branch: str, destination: Path) -> None:
        self.calls.append((repo, branch, destination))
        if self.error is not None:
            raise self.error
        destination.mkdir(parents=True, exist_ok=True)


@pytest.fixture
def fake_downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def git_repo() -> GitRepo:
    return GitRepo.from_url(REPO_URL)


@pytest.fixture
def inspection(git_repo: GitRepo) -> Inspection:
    return Inspection.create(git_repo, "master", "Java")


@pytest.fixture
def exited_pid() -> int:
    """Pid of a child process that has already exited and been reaped."""
    child = subprocess.Popen([sys.executable, "-c", "pass"])
    child.wait()
    return child.pid
