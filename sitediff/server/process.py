"""Subprocess helpers for bounded command runs and process-group termination."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import socket
from pathlib import Path
from typing import IO, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CommandResult(BaseModel):
    command: list[str]
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.exit_code == 0


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    """Signal the child's whole process group (npm forks the real server)."""
    if process.returncode is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(process.pid, sig)
        elif sig == getattr(signal, "SIGKILL", None):
            process.kill()
        else:
            process.terminate()
    except ProcessLookupError:
        pass


async def terminate_process(process: asyncio.subprocess.Process, grace_seconds: float = 5.0) -> None:
    """SIGTERM the process group, escalating to SIGKILL after ``grace_seconds``."""
    if process.returncode is not None:
        return
    _signal_group(process, signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_seconds)
    except asyncio.TimeoutError:
        logger.debug("Process %d ignored SIGTERM, killing", process.pid)
        _signal_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        await process.wait()


async def run_command(
    command: list[str],
    cwd: str | Path,
    timeout_seconds: float,
) -> CommandResult:
    """Run a command to completion, capturing output; kill it if it overruns."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    logger.debug("Running %s in %s (timeout %gs)", " ".join(command), cwd, timeout_seconds)

    process = await asyncio.create_subprocess_exec(
        *command,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        _signal_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))
        await process.wait()
        logger.warning("%s timed out after %gs", " ".join(command), timeout_seconds)
        return CommandResult(
            command=command,
            exit_code=process.returncode if process.returncode is not None else -1,
            timed_out=True,
            duration_seconds=round(loop.time() - start, 2),
        )

    return CommandResult(
        command=command,
        exit_code=process.returncode if process.returncode is not None else 0,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
        duration_seconds=round(loop.time() - start, 2),
    )


async def spawn_detached(
    command: list[str],
    cwd: str | Path,
    log_file: Optional[IO[bytes]] = None,
) -> asyncio.subprocess.Process:
    """Start a long-running child in its own session; output goes to ``log_file``."""
    sink = log_file if log_file is not None else asyncio.subprocess.DEVNULL
    logger.debug("Spawning %s in %s", " ".join(command), cwd)
    return await asyncio.create_subprocess_exec(
        *command,
        cwd=str(cwd),
        stdin=asyncio.subprocess.DEVNULL,
        stdout=sink,
        stderr=asyncio.subprocess.STDOUT if log_file is not None else asyncio.subprocess.DEVNULL,
        env={**os.environ},
        start_new_session=True,
    )


def pick_free_port(preferred: int) -> int:
    """Prefer ``preferred``; otherwise ask the OS. Falls back to ``preferred`` on error."""
    for candidate in (preferred, 0):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind(("127.0.0.1", candidate))
                return sock.getsockname()[1]
        except OSError as e:
            logger.debug("Port %d unavailable: %s", candidate, e)
    return preferred
