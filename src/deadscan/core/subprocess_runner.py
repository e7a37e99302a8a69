"""Running external commands with live output and a hard timeout.

``run_with_streaming`` is the low-level primitive: it starts the command in
its own process group, forwards output lines to a ``StreamHandler`` as they
arrive, and kills the whole group when the timeout expires.

``ProcessRunner`` builds on it and maps outcomes onto deadscan errors:
exit code 0 returns stdout, everything else raises ``ProcessExecutionError``.
"""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
import threading
from pathlib import Path
from typing import IO, Dict, List, Optional, Sequence, Union

from deadscan.core.errors import ProcessExecutionError
from deadscan.core.logging import get_logger
from deadscan.core.paths import canonical_path
from deadscan.core.streaming import (
    NullStreamHandler,
    StreamEvent,
    StreamHandler,
    StreamType,
)

LOGGER = get_logger(__name__)

Arg = Union[str, Path]

_IS_POSIX = os.name == "posix"

# Grace period for reader threads once the process group is gone
_READER_JOIN_TIMEOUT = 5.0


def _pump(
    pipe: IO[str],
    stream_type: StreamType,
    lines: List[str],
    handler: StreamHandler,
    tool_name: str,
) -> None:
    try:
        for line_number, line in enumerate(iter(pipe.readline, ""), start=1):
            lines.append(line)
            handler.emit(
                StreamEvent(
                    tool_name=tool_name,
                    stream_type=stream_type,
                    content=line.rstrip("\r\n"),
                    line_number=line_number,
                )
            )
    finally:
        pipe.close()


def _kill_process_tree(process: subprocess.Popen) -> None:
    """Kill the process and everything it spawned."""
    if _IS_POSIX:
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError as e:
            LOGGER.warning(f"Cannot kill process group {process.pid}: {e}")
    process.kill()


def run_with_streaming(
    cmd: Sequence[str],
    cwd: Optional[Arg] = None,
    tool_name: Optional[str] = None,
    stream_handler: Optional[StreamHandler] = None,
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """Run a command, streaming its output, and wait for it to finish.

    Args:
        cmd: Command and arguments.
        cwd: Working directory for the command.
        tool_name: Label for stream events (default: executable name).
        stream_handler: Receives output lines (default: discard).
        timeout: Seconds before the process group is killed. None waits forever.
        env: Extra environment variables layered over the current environment.

    Returns:
        CompletedProcess with the full stdout/stderr text. A non-zero
        return code is not an error at this level.

    Raises:
        subprocess.TimeoutExpired: If the timeout elapsed. The process group
            has been killed and reaped by the time this is raised.
        OSError: If the command could not be started.
    """
    handler = stream_handler or NullStreamHandler()
    name = tool_name or Path(cmd[0]).name

    kwargs = {}
    if _IS_POSIX:
        kwargs["start_new_session"] = True
    else:
        kwargs["creationflags"] = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)

    process = subprocess.Popen(
        list(cmd),
        cwd=str(cwd) if cwd is not None else None,
        env={**os.environ, **env} if env else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        **kwargs,
    )
    handler.command_started(name, cmd)

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []
    readers = [
        threading.Thread(
            target=_pump,
            args=(process.stdout, StreamType.STDOUT, stdout_lines, handler, name),
            name=f"{name}-stdout",
            daemon=True,
        ),
        threading.Thread(
            target=_pump,
            args=(process.stderr, StreamType.STDERR, stderr_lines, handler, name),
            name=f"{name}-stderr",
            daemon=True,
        ),
    ]
    for reader in readers:
        reader.start()

    try:
        returncode = process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_process_tree(process)
        process.wait()
        for reader in readers:
            reader.join(_READER_JOIN_TIMEOUT)
        handler.command_finished(name, None)
        raise subprocess.TimeoutExpired(
            list(cmd),
            timeout,
            output="".join(stdout_lines),
            stderr="".join(stderr_lines),
        )

    for reader in readers:
        reader.join()
    handler.command_finished(name, returncode)

    return subprocess.CompletedProcess(
        args=list(cmd),
        returncode=returncode,
        stdout="".join(stdout_lines),
        stderr="".join(stderr_lines),
    )


class ProcessRunner:
    """Runs external commands and maps their outcome to deadscan errors."""

    def __init__(self, stream_handler: Optional[StreamHandler] = None):
        self._stream_handler = stream_handler or NullStreamHandler()

    def run(
        self,
        command: Arg,
        args: Sequence[Arg] = (),
        cwd: Optional[Arg] = None,
        timeout: Optional[float] = None,
        tool_name: Optional[str] = None,
    ) -> str:
        """Run a command to completion.

        Args:
            command: Executable path.
            args: Command arguments. Path arguments should already be canonical.
            cwd: Working directory, canonicalized before use.
            timeout: Seconds before the command and its children are killed.
            tool_name: Label for logs and stream events.

        Returns:
            Captured standard output.

        Raises:
            ProcessExecutionError: On timeout, start failure, or non-zero exit.
        """
        cmd = [str(command), *(str(a) for a in args)]
        name = tool_name or Path(cmd[0]).name
        work_dir = canonical_path(cwd) if cwd is not None else None

        LOGGER.info(f"Running: {shlex.join(cmd)}")

        try:
            result = run_with_streaming(
                cmd=cmd,
                cwd=work_dir,
                tool_name=name,
                stream_handler=self._stream_handler,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            LOGGER.warning(f"{name} timed out after {timeout} seconds")
            stderr = e.stderr if isinstance(e.stderr, str) else ""
            raise ProcessExecutionError(
                f"{name} timed out after {timeout} seconds",
                command=cmd,
                stderr=stderr,
                timed_out=True,
            ) from e
        except OSError as e:
            raise ProcessExecutionError(
                f"Failed to start {name}: {e}",
                command=cmd,
            ) from e

        if result.returncode != 0:
            LOGGER.debug(f"{name} stderr:\n{result.stderr}")
            raise ProcessExecutionError(
                f"{name} exited with code {result.returncode}",
                command=cmd,
                returncode=result.returncode,
                stderr=result.stderr,
            )

        LOGGER.debug(f"{name} finished, {len(result.stdout)} bytes of output")
        return result.stdout
