from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
import time
import traceback
from pathlib import Path
from typing import Any, Iterable

from .config import ConfigError, RunnerConfig, load_config
from .events import emit_event
from .executor import CommandExecutor, task_command, task_label
from .models import TaskResult, TaskStatus
from .queue import TaskQueue
from .reporter import Reporter


class TaskFileError(ValueError):
    pass


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run queued shell tasks one at a time")
    parser.add_argument(
        "tasks_file",
        nargs="?",
        default="-",
        help="JSON-lines file of tasks ({\"id\": ..., \"command\": ...}); '-' reads stdin",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Do not print queue events",
    )
    return parser.parse_args(argv)


def _parse_task_lines(lines: Iterable[str]) -> list[dict]:
    tasks: list[dict] = []
    for line_no, line in enumerate(lines, start=1):
        raw = line.strip()
        if not raw or raw.startswith("#"):
            continue
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TaskFileError(f"line {line_no}: invalid JSON ({exc.msg})") from exc
        if not isinstance(payload, dict):
            raise TaskFileError(f"line {line_no}: expected a JSON object, got {type(payload).__name__}")
        tasks.append(payload)
    return tasks


def _load_tasks(tasks_file: str) -> list[dict]:
    if tasks_file == "-":
        return _parse_task_lines(sys.stdin)
    with Path(tasks_file).open(encoding="utf-8") as handle:
        return _parse_task_lines(handle)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, queue: TaskQueue, emit) -> list[int]:
    def _stop(signum: int) -> None:
        emit("signal", signal=signum, action="stop")
        queue.clear()
        # a paused queue would otherwise never reach its drained state
        queue.resume()

    def _pause(signum: int) -> None:
        emit("signal", signal=signum, action="pause")
        queue.pause()

    def _resume(signum: int) -> None:
        emit("signal", signal=signum, action="resume")
        queue.resume()

    handlers = {
        signal.SIGINT: _stop,
        signal.SIGTERM: _stop,
    }
    if hasattr(signal, "SIGUSR1"):
        handlers[signal.SIGUSR1] = _pause
        handlers[signal.SIGUSR2] = _resume

    installed: list[int] = []
    for signum, callback in handlers.items():
        try:
            loop.add_signal_handler(signum, callback, signum)
        except (NotImplementedError, RuntimeError, ValueError):
            continue
        installed.append(signum)
    return installed


async def run_tasks(
    config: RunnerConfig,
    tasks: list[Any],
    *,
    log_events: bool = True,
    executor: CommandExecutor | None = None,
    reporter: Reporter | None = None,
) -> int:
    def _event(name: str, **fields) -> None:
        if log_events:
            emit_event(name, **fields)

    if executor is None:
        executor = CommandExecutor(dry_run=config.dry_run, timeout_seconds=config.exec_timeout_seconds)
    if reporter is None:
        reporter = Reporter(details_max_chars=config.report_details_max_chars)
    index_key = config.queue.index_key
    outcomes: dict[TaskStatus, int] = {}

    async def _handle(task: Any) -> TaskResult:
        try:
            result = await executor.execute(task)
        except Exception as exc:  # pragma: no cover - defensive boundary
            result = TaskResult(
                status=TaskStatus.FAILED,
                summary=f"executor raised error: {exc}",
                details=traceback.format_exc(limit=5),
            )
        outcomes[result.status] = outcomes.get(result.status, 0) + 1
        try:
            reporter.report(task_label(task, index_key), task_command(task), result)
        except Exception as exc:
            _event("report_failed", task=task_label(task, index_key), error=str(exc))
        return result

    queue = TaskQueue.from_config(_handle, config.queue, log_events=log_events)
    loop = asyncio.get_running_loop()
    installed = _install_signal_handlers(loop, queue, _event)

    started = time.time()
    _event(
        "startup",
        submitted=len(tasks),
        index_key=index_key,
        remove_on_dispatch=config.queue.remove_on_dispatch,
        dry_run=config.dry_run,
        exec_timeout_seconds=config.exec_timeout_seconds,
    )
    try:
        queue.add(tasks)
        await queue.join()
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)

    failed = outcomes.get(TaskStatus.FAILED, 0)
    _event(
        "run_finished",
        submitted=len(tasks),
        succeeded=outcomes.get(TaskStatus.SUCCEEDED, 0),
        failed=failed,
        elapsed_ms=int((time.time() - started) * 1000),
    )
    return 1 if failed else 0


def run(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        config = load_config()
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    try:
        tasks = _load_tasks(args.tasks_file)
    except (OSError, TaskFileError) as exc:
        print(f"Task input error: {exc}", file=sys.stderr)
        return 3

    return asyncio.run(run_tasks(config, tasks, log_events=not args.quiet))


if __name__ == "__main__":
    raise SystemExit(run())
