"""Live output of the external commands deadscan runs.

``run_with_streaming`` reports each git/und invocation to a ``StreamHandler``:
once when the command starts, once per output line while it runs, and once
when it exits or is killed.
"""

from __future__ import annotations

import shlex
import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, TextIO

from rich.console import Console
from rich.markup import escape

from deadscan.core.logging import get_logger

LOGGER = get_logger(__name__)


class StreamType(str, Enum):
    """Pipe an output line was read from."""

    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass
class StreamEvent:
    """One output line of a running command."""

    tool_name: str
    stream_type: StreamType
    content: str
    line_number: Optional[int] = None


def describe_exit(returncode: Optional[int]) -> str:
    """Human readable outcome; ``None`` means the command was killed."""
    if returncode is None:
        return "killed after timeout"
    if returncode == 0:
        return "ok"
    return f"exit code {returncode}"


class StreamHandler(ABC):
    """Receives the lifecycle and output of external commands.

    ``emit`` is called from one reader thread per pipe, so implementations
    must be thread-safe.
    """

    @abstractmethod
    def command_started(self, tool_name: str, argv: Sequence[str]) -> None:
        """A command was spawned."""

    @abstractmethod
    def emit(self, event: StreamEvent) -> None:
        """A line was read from the command's stdout or stderr."""

    @abstractmethod
    def command_finished(self, tool_name: str, returncode: Optional[int]) -> None:
        """The command exited, or was killed when ``returncode`` is None."""


class NullStreamHandler(StreamHandler):
    """Discards everything."""

    def command_started(self, tool_name: str, argv: Sequence[str]) -> None:
        pass

    def emit(self, event: StreamEvent) -> None:
        pass

    def command_finished(self, tool_name: str, returncode: Optional[int]) -> None:
        pass


class LoggingStreamHandler(StreamHandler):
    """Sends command lifecycle and output to the deadscan log."""

    def command_started(self, tool_name: str, argv: Sequence[str]) -> None:
        LOGGER.info(f"Running {tool_name}: {shlex.join(argv)}")

    def emit(self, event: StreamEvent) -> None:
        LOGGER.debug(f"[{event.tool_name}:{event.stream_type.value}] {event.content}")

    def command_finished(self, tool_name: str, returncode: Optional[int]) -> None:
        if returncode == 0:
            LOGGER.info(f"{tool_name} finished")
        else:
            LOGGER.warning(f"{tool_name} finished: {describe_exit(returncode)}")


class CLIStreamHandler(StreamHandler):
    """Shows command progress on the terminal.

    Output lines are only shown with ``show_output``; stderr lines are dimmed.
    """

    def __init__(self, output: TextIO = sys.stderr, show_output: bool = True):
        self._console = Console(file=output, highlight=False, soft_wrap=True)
        self._show_output = show_output
        self._lock = threading.Lock()

    def command_started(self, tool_name: str, argv: Sequence[str]) -> None:
        with self._lock:
            self._console.print(f"[bold]{escape(tool_name)}[/bold] started")

    def emit(self, event: StreamEvent) -> None:
        if not self._show_output:
            return
        style = "dim" if event.stream_type == StreamType.STDERR else ""
        line = f"  {escape(event.tool_name)} | {escape(event.content)}"
        with self._lock:
            self._console.print(f"[{style}]{line}[/{style}]" if style else line)

    def command_finished(self, tool_name: str, returncode: Optional[int]) -> None:
        color = "green" if returncode == 0 else "red"
        with self._lock:
            self._console.print(
                f"[bold]{escape(tool_name)}[/bold] [{color}]{describe_exit(returncode)}[/{color}]"
            )


class CallbackStreamHandler(StreamHandler):
    """Forwards to plain callables, for tests and embedding applications."""

    def __init__(
        self,
        on_event: Optional[Callable[[StreamEvent], None]] = None,
        on_start: Optional[Callable[[str, List[str]], None]] = None,
        on_finish: Optional[Callable[[str, Optional[int]], None]] = None,
    ):
        self._on_event = on_event
        self._on_start = on_start
        self._on_finish = on_finish
        self._lock = threading.Lock()

    def command_started(self, tool_name: str, argv: Sequence[str]) -> None:
        if self._on_start:
            with self._lock:
                self._on_start(tool_name, list(argv))

    def emit(self, event: StreamEvent) -> None:
        if self._on_event:
            with self._lock:
                self._on_event(event)

    def command_finished(self, tool_name: str, returncode: Optional[int]) -> None:
        if self._on_finish:
            with self._lock:
                self._on_finish(tool_name, returncode)
