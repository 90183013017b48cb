"""Build/serve supervisor — installs, builds and serves the staged app."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import IO, Optional

import httpx

from sitediff import errors
from sitediff.models.config import DiffConfig
from sitediff.progress import ProgressReporter

from .process import pick_free_port, run_command, spawn_detached, terminate_process

logger = logging.getLogger(__name__)


class ServerHandle:
    """A running staging server. Stopping it is idempotent."""

    def __init__(self, base_url: str, port: int, process: asyncio.subprocess.Process,
                 log_file: Optional[IO[bytes]] = None):
        self.base_url = base_url
        self.port = port
        self.process = process
        self.log_file = log_file
        self.stopped = False

    def __repr__(self) -> str:
        return f"ServerHandle(base_url={self.base_url!r}, pid={self.process.pid}, stopped={self.stopped})"


class BuildServeSupervisor:
    """Owns the install → build → serve → readiness → teardown sequence."""

    def __init__(self, config: DiffConfig, progress: ProgressReporter | None = None):
        self.config = config
        self.progress = progress or ProgressReporter()

    async def ensure_dependencies(self, app_dir: Path) -> None:
        """Install node dependencies unless ``node_modules`` is already present."""
        if (app_dir / "node_modules").exists():
            logger.debug("Dependencies already installed in %s", app_dir)
            return

        verb = "ci" if (app_dir / "package-lock.json").exists() else "install"
        step = f"{self.config.npm_command} {verb}"
        logger.info("Installing dependencies (%s)...", step)
        self.progress.emit("deps", detail=step)

        timeout = self.config.install_timeout_seconds
        try:
            result = await run_command([self.config.npm_command, verb], app_dir, timeout)
        except OSError as e:
            raise errors.step_not_runnable("dependency-install-failure", step, e) from e
        if result.timed_out:
            raise errors.step_timed_out("dependency-install-timeout", step, timeout)
        if result.exit_code != 0:
            raise errors.step_failed("dependency-install-failure", step,
                                     result.exit_code, result.stdout, result.stderr)
        logger.info("Dependencies installed in %.1fs", result.duration_seconds)

    async def build(self, app_dir: Path) -> None:
        step = f"{self.config.npm_command} run {self.config.build_script}"
        self.progress.emit("build", detail=step)
        timeout = self.config.build_timeout_seconds
        try:
            result = await run_command(
                [self.config.npm_command, "run", self.config.build_script], app_dir, timeout,
            )
        except OSError as e:
            raise errors.step_not_runnable("build-failure", step, e) from e
        if result.timed_out:
            raise errors.step_timed_out("build-timeout", step, timeout)
        if result.exit_code != 0:
            raise errors.step_failed("build-failure", step,
                                     result.exit_code, result.stdout, result.stderr)
        self.progress.emit("build-complete", stdout=len(result.stdout), stderr=len(result.stderr))
        logger.info("Build complete in %.1fs", result.duration_seconds)

    async def wait_until_ready(self, handle: ServerHandle) -> None:
        """Poll the root URL until it answers 2xx or the readiness budget runs out."""
        url = handle.base_url + "/"
        timeout = self.config.ready_timeout_seconds
        interval = self.config.ready_poll_interval_seconds
        deadline = time.monotonic() + timeout
        attempts = 0

        async with httpx.AsyncClient(timeout=max(interval, 2.0)) as client:
            while time.monotonic() < deadline:
                attempts += 1
                if handle.process.returncode is not None:
                    raise errors.DiffError(
                        "serve-readiness-timeout",
                        f"staging server exited with code {handle.process.returncode} before becoming ready",
                        {"url": url, "exitCode": handle.process.returncode},
                    )
                try:
                    response = await client.get(url)
                    if response.is_success:
                        logger.debug("Server ready after %d attempts", attempts)
                        return
                except httpx.HTTPError:
                    pass
                await asyncio.sleep(interval)

        raise errors.serve_readiness_timeout(url, timeout)

    async def start(self, app_dir: Path, log_path: Path | None = None) -> ServerHandle:
        """Install, build and serve ``app_dir``; returns once the server answers.

        Any failure after the server was spawned kills it before propagating.
        """
        await self.ensure_dependencies(app_dir)

        port = pick_free_port(self.config.default_port)
        logger.info("--- Build (port %d) ---", port)
        await self.build(app_dir)

        log_file = None
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = open(log_path, "wb")

        base_url = f"http://localhost:{port}"
        command = [self.config.npm_command, "run", self.config.start_script, "--", "-p", str(port)]
        try:
            process = await spawn_detached(command, app_dir, log_file=log_file)
        except BaseException as e:
            if log_file is not None:
                log_file.close()
            if isinstance(e, OSError):
                raise errors.step_not_runnable("build-failure", " ".join(command), e) from e
            raise
        handle = ServerHandle(base_url, port, process, log_file=log_file)
        self.progress.emit("serve", detail=base_url + "/")
        logger.info("--- Serve: %s (pid %d) ---", base_url, process.pid)

        try:
            await self.wait_until_ready(handle)
        except BaseException:
            await self.stop(handle)
            raise

        self.progress.emit("serve-ready", detail=base_url + "/")
        return handle

    async def stop(self, handle: ServerHandle) -> None:
        """Terminate the server's process group. Safe to call more than once."""
        if handle.stopped:
            return
        handle.stopped = True
        self.progress.emit("serve-stop", detail=handle.base_url)
        logger.debug("Stopping staging server pid %d", handle.process.pid)
        try:
            await terminate_process(handle.process, self.config.stop_grace_seconds)
        finally:
            if handle.log_file is not None:
                handle.log_file.close()

    def serve(self, app_dir: Path, log_path: Path | None = None) -> "StagingServer":
        """Context manager form of ``start``/``stop``."""
        return StagingServer(self, app_dir, log_path)


class StagingServer:
    """Starts the staged app on enter and always stops it on exit."""

    def __init__(self, supervisor: BuildServeSupervisor, app_dir: Path, log_path: Path | None = None):
        self.supervisor = supervisor
        self.app_dir = app_dir
        self.log_path = log_path
        self.handle: Optional[ServerHandle] = None

    async def __aenter__(self) -> ServerHandle:
        self.handle = await self.supervisor.start(self.app_dir, log_path=self.log_path)
        return self.handle

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self.handle is not None:
            await self.supervisor.stop(self.handle)
