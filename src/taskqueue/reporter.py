from __future__ import annotations

import sys
from typing import TextIO

from .models import TaskResult, TaskStatus


def _trim(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def _status_label_and_icon(status: TaskStatus) -> tuple[str, str]:
    if status == TaskStatus.SUCCEEDED:
        return ("succeeded", "[ok]")
    if status == TaskStatus.FAILED:
        return ("failed", "[fail]")
    return (status.value, "[info]")


class Reporter:
    def __init__(
        self,
        *,
        stream: TextIO | None = None,
        input_max_chars: int = 500,
        summary_max_chars: int = 1200,
        details_max_chars: int = 4000,
    ) -> None:
        self._stream = stream
        self._input_max_chars = input_max_chars
        self._summary_max_chars = summary_max_chars
        self._details_max_chars = details_max_chars

    def report(self, label: str, command: str, result: TaskResult) -> None:
        status_label, status_icon = _status_label_and_icon(result.status)
        lines = [
            f"{status_icon} task {label}",
            f"status: {status_label}",
            f"input: {_trim(command, self._input_max_chars)}",
            f"summary: {_trim(result.summary, self._summary_max_chars)}",
        ]
        details = _trim(result.details, self._details_max_chars)
        if details:
            lines.append("details:")
            lines.extend(f"  {line}" for line in details.splitlines())
        stream = self._stream if self._stream is not None else sys.stderr
        print("\n".join(lines), file=stream, flush=True)
