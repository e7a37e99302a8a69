"""Exception hierarchy for deadscan.

Request validation errors (malformed input, conflicts, missing records) are
raised to the caller. Pipeline errors (download, process execution, filesystem)
are caught by the pipeline and recorded on the inspection as a failure.
"""

from __future__ import annotations

from typing import Optional, Sequence


class DeadscanError(Exception):
    """Base class for all deadscan errors."""


# Request validation


class MalformedInputError(DeadscanError):
    """A request carried an empty or invalid value."""


class MalformedRepositoryUrlError(MalformedInputError):
    """A repository URL could not be parsed into host/owner/name."""

    def __init__(self, url: str):
        super().__init__(f"Malformed repository URL: {url!r}")
        self.url = url


class UnsupportedLanguageError(MalformedInputError):
    """The requested language is not understood by the analysis tool."""

    def __init__(self, language: str):
        super().__init__(f"Unsupported language: {language!r}")
        self.language = language


class InspectionAlreadyExistsError(DeadscanError):
    """An unfinished inspection already exists for the repository and branch."""


class InspectionLockedError(DeadscanError):
    """A mutating request targeted an inspection that is still running."""


class InspectionNotFoundError(DeadscanError):
    """No inspection exists for the given id or repository."""


# Pipeline


class DownloadError(DeadscanError):
    """Cloning the repository failed."""


class ProcessExecutionError(DeadscanError):
    """An external command timed out, could not start, or exited non-zero."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.command = list(command or [])
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out


class FileSystemError(DeadscanError):
    """A filesystem operation (cleanup, directory creation) failed."""


class PathResolutionError(FileSystemError):
    """A path could not be converted to canonical form."""


class ExecutionQueueError(DeadscanError):
    """The analysis queue refused a job."""


class QueueFullError(ExecutionQueueError):
    """Too many analysis jobs are already waiting."""


class QueueClosedError(ExecutionQueueError):
    """The analysis queue is not accepting jobs."""


def describe_error(error: BaseException) -> str:
    """Build the human-readable failure message stored on an inspection."""
    if isinstance(error, ProcessExecutionError):
        message = str(error)
        stderr = error.stderr.strip()
        if stderr and not error.timed_out:
            # Last lines carry the actual diagnostic from und/uperl
            tail = "\n".join(stderr.splitlines()[-5:])
            message = f"{message}\n{tail}"
        return message
    if isinstance(error, DeadscanError):
        return str(error) or type(error).__name__
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__
