"""Repository download via the git command line."""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from deadscan.core.errors import DownloadError
from deadscan.core.logging import get_logger
from deadscan.core.models import GitRepo
from deadscan.core.paths import canonical_path
from deadscan.core.streaming import StreamHandler
from deadscan.core.subprocess_runner import run_with_streaming

LOGGER = get_logger(__name__)

# Never block on a credential prompt for private repositories
GIT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class RepositoryDownloader(ABC):
    """Fetches one branch of a remote repository into a local directory."""

    @abstractmethod
    def download(self, repo: GitRepo, branch: str, destination: Path) -> None:
        """Download ``branch`` of ``repo`` into ``destination``.

        Raises:
            DownloadError: If the repository could not be fetched.
        """


class GitDownloader(RepositoryDownloader):
    """Shallow single-branch clone through the ``git`` executable."""

    def __init__(
        self,
        git_binary: str = "git",
        timeout: Optional[float] = 300,
        depth: int = 1,
        stream_handler: Optional[StreamHandler] = None,
    ):
        """Initialize GitDownloader.

        Args:
            git_binary: git executable name or path.
            timeout: Seconds before the clone is killed.
            depth: History depth; 0 or less clones full history.
            stream_handler: Receives git's progress output.
        """
        self._git = git_binary
        self._timeout = timeout
        self._depth = depth
        self._stream_handler = stream_handler

    def build_clone_command(self, repo: GitRepo, branch: str, destination: Path) -> List[str]:
        cmd = [self._git, "clone", "--branch", branch, "--single-branch"]
        if self._depth > 0:
            cmd.extend(["--depth", str(self._depth)])
        cmd.extend([repo.url, canonical_path(destination)])
        return cmd

    def download(self, repo: GitRepo, branch: str, destination: Path) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(f"Cannot create {destination.parent}: {e}") from e

        cmd = self.build_clone_command(repo, branch, destination)
        LOGGER.info(f"Cloning {repo.full_name} (branch {branch}) into {destination}")

        try:
            result = run_with_streaming(
                cmd=cmd,
                tool_name="git-clone",
                stream_handler=self._stream_handler,
                timeout=self._timeout,
                env=GIT_ENV,
            )
        except subprocess.TimeoutExpired as e:
            raise DownloadError(
                f"Cloning {repo.url} timed out after {self._timeout} seconds"
            ) from e
        except OSError as e:
            raise DownloadError(f"Failed to run git: {e}") from e

        if result.returncode != 0:
            reason = _last_line(result.stderr) or f"exit code {result.returncode}"
            raise DownloadError(f"Failed to clone {repo.url} (branch {branch}): {reason}")

        LOGGER.debug(f"Cloned {repo.full_name} into {destination}")


def _last_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else ""
