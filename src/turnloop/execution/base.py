from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Uniform capability contract shared by every execution backend.
"""

from dataclasses import dataclass
from typing import Literal, Protocol


ExecutionAdapterType = Literal["local", "container", "remote_sandbox"]


@dataclass(frozen=True, slots=True)
class CommandResult:
    """
    Outcome of one shell command.

    A non-zero `exit_code` is a normal result, not an exception.
    """

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    name: str
    path: str
    is_dir: bool


class ExecutionAdapter(Protocol):
    """
    Command and filesystem capability of one backend.

    Implementations own their internal concurrency safety; the factory only
    verifies that an adapter works at creation time.
    """

    type: ExecutionAdapterType

    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        timeout_s: float | None = None,
    ) -> CommandResult:
        ...

    async def read_file(self, path: str) -> str:
        ...

    async def write_file(self, path: str, content: str) -> None:
        ...

    async def list_directory(self, path: str) -> list[DirectoryEntry]:
        ...

    async def file_exists(self, path: str) -> bool:
        ...
