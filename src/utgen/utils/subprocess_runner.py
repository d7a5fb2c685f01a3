"""Subprocess execution with concurrent output capture and a hard timeout.

Build tools (Maven) can produce a lot of output on both streams; each stream
is drained by its own reader task so neither pipe buffer can stall the
process.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0

_TIMEOUT_MESSAGE = "Process timed out and was killed"

_READER_GRACE = 5.0

_CHUNK_SIZE = 65536


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process (-1 when killed or never started)."""

    stdout: str
    """Standard output captured from the process."""

    stderr: str
    """Standard error captured from the process."""

    success: bool
    """True if returncode is 0 and the process was not killed."""

    timed_out: bool = False
    """True if the process was terminated due to timeout."""

    duration_ms: float = 0.0
    """Actual duration of execution in milliseconds."""

    def format_for_tool(self, *, max_chars: int = 8000) -> str:
        """Render as the ``exitCode=N`` text block returned by build tools."""
        if self.timed_out:
            status = "TIMEOUT"
        else:
            status = "BUILD SUCCESS" if self.success else "BUILD FAILURE"
        output = self.stdout
        if len(output) > max_chars:
            output = "...(truncated)...\n" + output[-max_chars:]
        parts = [f"exitCode={self.returncode}", status, "STDOUT:", output]
        if self.stderr.strip():
            parts.extend(["STDERR:", self.stderr[-max_chars:]])
        return "\n".join(parts)


async def _drain(stream: asyncio.StreamReader | None, chunks: list[bytes]) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        chunks.append(chunk)


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        pass


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    env: dict[str, str] | None = None,
    check: bool = False,
) -> SubprocessResult:
    """Execute a command in a subprocess with timeout and error handling.

    Args:
        command: Command and arguments as a sequence (e.g. ``['mvn', 'test-compile']``).
        cwd: Working directory for the subprocess. Defaults to current directory.
        timeout: Maximum seconds to wait for completion. Defaults to 300.
        env: Extra environment variables, merged over the current environment.
        check: If True, raise SubprocessError on non-zero exit code.

    Returns:
        SubprocessResult with exit code, output, and metadata. A timeout is
        reported through ``timed_out`` rather than raised.

    Raises:
        SubprocessError: If the executable is missing, or check=True and the
            command fails.
        ValueError: If command is empty, timeout is invalid or cwd is missing.
    """
    if not command:
        raise ValueError("Command cannot be empty")

    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    full_env = {**os.environ, **env} if env else None

    logger.debug(
        "Running subprocess: %s (cwd=%s, timeout=%s)",
        " ".join(str(c) for c in command),
        work_dir,
        timeout,
    )

    start_time = time.perf_counter()
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
            env=full_env,
        )
    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(returncode=-1, stdout="", stderr=str(exc), success=False),
        ) from exc

    stdout_chunks: list[bytes] = []
    stderr_chunks: list[bytes] = []
    readers = asyncio.gather(
        _drain(process.stdout, stdout_chunks),
        _drain(process.stderr, stderr_chunks),
    )

    async def _complete() -> None:
        await asyncio.shield(readers)
        await process.wait()

    timed_out = False
    try:
        await asyncio.wait_for(_complete(), timeout=timeout)
    except TimeoutError:
        logger.warning("Subprocess timed out after %s seconds", timeout)
        timed_out = True
        _kill(process)
        await process.wait()
        try:
            # Grandchildren may still hold the pipes open
            await asyncio.wait_for(readers, timeout=_READER_GRACE)
        except TimeoutError:
            logger.debug("Output readers cancelled after kill")
    except BaseException:
        # Reader failure or cancellation: never leave the child running
        readers.cancel()
        _kill(process)
        await process.wait()
        raise

    duration_ms = (time.perf_counter() - start_time) * 1000
    stdout = b"".join(stdout_chunks).decode("utf-8", errors="replace")
    stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")
    if timed_out:
        stderr = (stderr + "\n" + _TIMEOUT_MESSAGE).lstrip()
        returncode = -1
    else:
        returncode = process.returncode if process.returncode is not None else -1

    result = SubprocessResult(
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        success=returncode == 0 and not timed_out,
        timed_out=timed_out,
        duration_ms=duration_ms,
    )

    logger.debug(
        "Subprocess completed: returncode=%d, duration=%.2fms, success=%s",
        returncode,
        duration_ms,
        result.success,
    )

    if check and not result.success:
        raise SubprocessError(
            f"Command failed with exit code {returncode}: {' '.join(str(c) for c in command)}",
            result=result,
        )
    return result


class SubprocessError(Exception):
    """Raised when a subprocess cannot be started or fails under ``check=True``."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        super().__init__(message)
        self.result = result
