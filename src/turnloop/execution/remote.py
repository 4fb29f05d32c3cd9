from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Remote ephemeral sandbox backend built on the E2B async SDK.
"""

from typing import Any

import structlog

from .base import CommandResult, DirectoryEntry, ExecutionAdapterType
from .errors import ExecutionBackendUnavailableError, ExecutionConfigurationError


logger = structlog.get_logger().bind(component="execution.remote_sandbox")


class RemoteSandboxExecutionAdapter:
    """
    Execution adapter bound to one remote sandbox instance.

    Use `create` to connect by sandbox id; the constructor accepts an already
    connected sandbox object exposing `commands` and `files`.
    """

    type: ExecutionAdapterType = "remote_sandbox"

    def __init__(self, sandbox: Any, *, sandbox_id: str, workdir: str | None = None) -> None:
        self.sandbox = sandbox
        self.sandbox_id = sandbox_id
        self.workdir = workdir

    @classmethod
    async def create(
        cls,
        sandbox_id: str,
        *,
        workdir: str | None = None,
    ) -> "RemoteSandboxExecutionAdapter":
        """
        Connect to an existing sandbox.

        Raises:
            ExecutionConfigurationError: If the id is empty or the SDK is missing.
            ExecutionBackendUnavailableError: If the sandbox cannot be reached.
        """
        if not sandbox_id:
            raise ExecutionConfigurationError("A sandbox id is required for the remote sandbox backend")
        try:
            from e2b import AsyncSandbox
        except Exception as e:  # pragma: no cover - environment dependent
            raise ExecutionConfigurationError(
                "e2b is not installed. Install the 'remote' extra to use the remote sandbox backend."
            ) from e

        try:
            sandbox = await AsyncSandbox.connect(sandbox_id)
        except Exception as e:
            raise ExecutionBackendUnavailableError(
                f"Could not connect to sandbox '{sandbox_id}': {e}"
            ) from e

        logger.info("sandbox.connected", sandbox_id=sandbox_id)
        return cls(sandbox, sandbox_id=sandbox_id, workdir=workdir)

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout_s: float | None = None,
    ) -> CommandResult:
        kwargs: dict[str, Any] = {}
        if cwd or self.workdir:
            kwargs["cwd"] = cwd or self.workdir
        if timeout_s is not None:
            kwargs["timeout"] = timeout_s
        try:
            res = await self.sandbox.commands.run(command, **kwargs)
        except Exception as e:
            # the SDK raises on non-zero exit; those carry the command outcome
            exit_code = getattr(e, "exit_code", None)
            if not isinstance(exit_code, int):
                raise
            return CommandResult(
                exit_code=exit_code,
                stdout=getattr(e, "stdout", "") or "",
                stderr=getattr(e, "stderr", "") or "",
            )
        return CommandResult(
            exit_code=int(getattr(res, "exit_code", 0) or 0),
            stdout=getattr(res, "stdout", "") or "",
            stderr=getattr(res, "stderr", "") or "",
        )

    async def read_file(self, path: str) -> str:
        return await self.sandbox.files.read(path)

    async def write_file(self, path: str, content: str) -> None:
        await self.sandbox.files.write(path, content)

    async def list_directory(self, path: str) -> list[DirectoryEntry]:
        rows = await self.sandbox.files.list(path)
        out: list[DirectoryEntry] = []
        for row in rows:
            kind = getattr(row, "type", None)
            kind_name = str(getattr(kind, "value", kind) or "").lower()
            out.append(
                DirectoryEntry(
                    name=row.name,
                    path=getattr(row, "path", None) or f"{path.rstrip('/')}/{row.name}",
                    is_dir=kind_name in ("dir", "directory"),
                )
            )
        return out

    async def file_exists(self, path: str) -> bool:
        return bool(await self.sandbox.files.exists(path))
