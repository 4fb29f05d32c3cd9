from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Managed-container backend driven through the docker CLI and docker compose.
"""

import asyncio
import posixpath
import re
import shlex
from dataclasses import dataclass
from pathlib import Path

import structlog

from .base import CommandResult, DirectoryEntry, ExecutionAdapterType
from .errors import CommandExecutionError, ExecutionBackendUnavailableError


logger = structlog.get_logger().bind(component="execution.container")


@dataclass(frozen=True, slots=True)
class ContainerInfo:
    container_id: str
    workdir: str = "/workspace"


def derive_project_name(project_root: str | Path) -> str:
    """Compose-safe project name derived from the project root directory name."""
    raw = Path(project_root).resolve().name.lower()
    cleaned = re.sub(r"[^a-z0-9_-]", "", raw)
    return cleaned or "turnloop"


class ContainerManager:
    """
    Owns the lifecycle of the sandbox container for one project root.

    Every docker invocation goes through `_run`, which tests override to
    simulate the container runtime.
    """

    def __init__(
        self,
        *,
        project_root: str | Path,
        compose_file: str = "docker-compose.yml",
        service_name: str = "sandbox",
        project_name: str | None = None,
        workdir: str = "/workspace",
        command_timeout_s: float | None = 120.0,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        compose_path = Path(compose_file)
        self.compose_file = compose_path if compose_path.is_absolute() else self.project_root / compose_path
        self.service_name = service_name
        self.project_name = project_name or derive_project_name(self.project_root)
        self.workdir = workdir
        self.command_timeout_s = command_timeout_s
        self._info: ContainerInfo | None = None

    @property
    def container_info(self) -> ContainerInfo | None:
        return self._info

    async def _run(
        self,
        argv: list[str],
        *,
        stdin: str | None = None,
        timeout_s: float | None = None,
    ) -> CommandResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.project_root),
            )
        except OSError as e:
            raise CommandExecutionError(f"Failed to run '{argv[0]}': {e}") from e

        effective_timeout = timeout_s if timeout_s is not None else self.command_timeout_s
        payload = stdin.encode("utf-8") if stdin is not None else None
        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(payload), effective_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.communicate()
            raise CommandExecutionError(
                f"Command timed out after {effective_timeout} seconds: {shlex.join(argv)}"
            )

        return CommandResult(
            exit_code=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout_b.decode("utf-8", errors="replace"),
            stderr=stderr_b.decode("utf-8", errors="replace"),
        )

    def _compose(self, *args: str) -> list[str]:
        return [
            "docker",
            "compose",
            "-f",
            str(self.compose_file),
            "-p",
            self.project_name,
            *args,
        ]

    async def is_available(self) -> bool:
        """Probe the container runtime with `docker info`."""
        try:
            res = await self._run(["docker", "info"], timeout_s=30.0)
        except CommandExecutionError as e:
            logger.info("container_runtime.unreachable", error=str(e))
            return False
        return res.exit_code == 0

    async def _running_container_id(self) -> str | None:
        res = await self._run(self._compose("ps", "-q", self.service_name))
        if res.exit_code != 0:
            return None
        ids = [line.strip() for line in res.stdout.splitlines() if line.strip()]
        return ids[0] if ids else None

    async def ensure_container(self) -> ContainerInfo | None:
        """
        Return the running service container, starting it when needed.

        Returns:
            Container info, or `None` when the container could not be started.
        """
        container_id = await self._running_container_id()
        if container_id is None:
            logger.info(
                "container.starting",
                project_name=self.project_name,
                service_name=self.service_name,
            )
            up = await self._run(self._compose("up", "-d", self.service_name))
            if up.exit_code != 0:
                logger.warning("container.start_failed", stderr=up.stderr.strip())
                self._info = None
                return None
            container_id = await self._running_container_id()
            if container_id is None:
                self._info = None
                return None

        self._info = ContainerInfo(container_id=container_id, workdir=self.workdir)
        return self._info

    async def exec(
        self,
        command: str,
        *,
        cwd: str | None = None,
        stdin: str | None = None,
        timeout_s: float | None = None,
    ) -> CommandResult:
        info = self._info or await self.ensure_container()
        if info is None:
            raise ExecutionBackendUnavailableError("Sandbox container is not running")
        argv = ["docker", "exec"]
        if stdin is not None:
            argv.append("-i")
        argv += ["-w", cwd or info.workdir, info.container_id, "sh", "-c", command]
        return await self._run(argv, stdin=stdin, timeout_s=timeout_s)


class ContainerExecutionAdapter:
    """
    Execution adapter backed by a `ContainerManager`.

    Relative paths resolve against the container working directory.
    """

    type: ExecutionAdapterType = "container"

    def __init__(self, manager: ContainerManager) -> None:
        self.manager = manager

    def _resolve(self, path: str) -> str:
        if posixpath.isabs(path):
            return path
        return posixpath.join(self.manager.workdir, path)

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout_s: float | None = None,
    ) -> CommandResult:
        workdir = self._resolve(cwd) if cwd else None
        return await self.manager.exec(command, cwd=workdir, timeout_s=timeout_s)

    async def read_file(self, path: str) -> str:
        target = self._resolve(path)
        res = await self.manager.exec(f"cat -- {shlex.quote(target)}")
        if res.exit_code != 0:
            raise FileNotFoundError(res.stderr.strip() or target)
        return res.stdout

    async def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)
        parent = posixpath.dirname(target) or "."
        res = await self.manager.exec(
            f"mkdir -p -- {shlex.quote(parent)} && cat > {shlex.quote(target)}",
            stdin=content,
        )
        if res.exit_code != 0:
            raise CommandExecutionError(f"Failed to write '{target}': {res.stderr.strip()}")

    async def list_directory(self, path: str) -> list[DirectoryEntry]:
        target = self._resolve(path)
        res = await self.manager.exec(f"ls -1Ap -- {shlex.quote(target)}")
        if res.exit_code != 0:
            raise FileNotFoundError(res.stderr.strip() or target)
        out: list[DirectoryEntry] = []
        for line in res.stdout.splitlines():
            if not line:
                continue
            is_dir = line.endswith("/")
            name = line.rstrip("/")
            out.append(DirectoryEntry(name=name, path=posixpath.join(target, name), is_dir=is_dir))
        return out

    async def file_exists(self, path: str) -> bool:
        res = await self.manager.exec(f"test -e {shlex.quote(self._resolve(path))}")
        return res.exit_code == 0
