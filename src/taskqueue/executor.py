from __future__ import annotations

import asyncio
import os
from typing import Any, Mapping

from .models import TaskResult, TaskStatus


def task_command(task: Any) -> str:
    if isinstance(task, Mapping):
        raw = task.get("command")
    else:
        raw = getattr(task, "command", None)
    return str(raw or "").strip()


def task_label(task: Any, index_key: str = "id") -> str:
    if isinstance(task, Mapping):
        value = task.get(index_key)
    else:
        value = getattr(task, index_key, None)
    return "<unkeyed>" if value is None else str(value)


class CommandExecutor:
    def __init__(
        self,
        *,
        dry_run: bool,
        timeout_seconds: float,
        cwd: str | None = None,
    ) -> None:
        self._dry_run = dry_run
        self._timeout_seconds = timeout_seconds
        self._cwd = cwd or (os.environ.get("TASKQUEUE_WORKDIR") or "").strip() or None

    async def execute(self, task: Any) -> TaskResult:
        command = task_command(task)
        if not command:
            return TaskResult(
                status=TaskStatus.FAILED,
                summary="invalid task: empty command",
                details='use format: {"id": "...", "command": "<shell command>"}',
            )

        if self._dry_run:
            return TaskResult(
                status=TaskStatus.SUCCEEDED,
                summary="dry-run only, no command executed",
                details=f"planned command: {command}",
            )

        return await self._run_shell(command)

    async def _run_shell(self, command: str) -> TaskResult:
        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
        except Exception as exc:  # pragma: no cover - OS-level failures
            return TaskResult(
                status=TaskStatus.FAILED,
                summary=f"shell execution failed: {exc}",
                details=command,
            )

        try:
            stdout_raw, stderr_raw = await asyncio.wait_for(proc.communicate(), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return TaskResult(
                status=TaskStatus.FAILED,
                summary=f"shell command timed out after {self._timeout_seconds:g}s",
                details=command,
            )
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        stdout = (stdout_raw or b"").decode(errors="replace").strip()
        stderr = (stderr_raw or b"").decode(errors="replace").strip()
        details = "\n".join(part for part in [stdout, stderr] if part)
        if proc.returncode == 0:
            return TaskResult(
                status=TaskStatus.SUCCEEDED,
                summary="shell command completed",
                details=details or "<no output>",
            )
        return TaskResult(
            status=TaskStatus.FAILED,
            summary=f"shell command exited with code {proc.returncode}",
            details=details or "<no output>",
        )
