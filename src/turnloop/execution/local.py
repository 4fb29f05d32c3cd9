from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Direct host execution. This is the terminal fallback of the adapter factory,
so construction must never fail.
"""

import asyncio
from pathlib import Path

import structlog

from .base import CommandResult, DirectoryEntry, ExecutionAdapterType
from .errors import CommandExecutionError


logger = structlog.get_logger().bind(component="execution.local")


class LocalExecutionAdapter:
    """
    Runs shell commands and file operations on the host.

    Relative paths resolve against `root_dir` (the process working directory
    by default). There is no sandboxing; selection policy is the factory's job.
    """

    type: ExecutionAdapterType = "local"

    def __init__(
        self,
        *,
        root_dir: str | Path | None = None,
        default_timeout_s: float | None = None,
        max_output_chars: int = 200_000,
    ) -> None:
        self.root_dir = Path(root_dir).resolve() if root_dir is not None else Path.cwd()
        self.default_timeout_s = default_timeout_s
        self.max_output_chars = max_output_chars

    def _resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.root_dir / p

    def _clip(self, text: str) -> str:
        if len(text) > self.max_output_chars:
            return text[: self.max_output_chars]
        return text

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout_s: float | None = None,
    ) -> CommandResult:
        workdir = self._resolve(cwd) if cwd else self.root_dir
        effective_timeout = timeout_s if timeout_s is not None else self.default_timeout_s

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(workdir),
            )
        except OSError as e:
            raise CommandExecutionError(f"Failed to start command '{command}': {e}") from e

        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), effective_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.communicate()
            raise CommandExecutionError(
                f"Command timed out after {effective_timeout} seconds: {command}"
            )

        exit_code = proc.returncode if proc.returncode is not None else -1
        logger.debug("command.completed", command=command, exit_code=exit_code)
        return CommandResult(
            exit_code=exit_code,
            stdout=self._clip(stdout_b.decode("utf-8", errors="replace")),
            stderr=self._clip(stderr_b.decode("utf-8", errors="replace")),
        )

    async def read_file(self, path: str) -> str:
        target = self._resolve(path)
        return await asyncio.to_thread(target.read_text, encoding="utf-8")

    async def write_file(self, path: str, content: str) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def list_directory(self, path: str) -> list[DirectoryEntry]:
        target = self._resolve(path)

        def _list() -> list[DirectoryEntry]:
            return [
                DirectoryEntry(name=row.name, path=str(row), is_dir=row.is_dir())
                for row in sorted(target.iterdir())
            ]

        return await asyncio.to_thread(_list)

    async def file_exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._resolve(path).exists)
