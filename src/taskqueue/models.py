from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class QueueState(str, Enum):
    WAITING = "waiting"
    PROCESSING = "processing"
    PAUSED = "paused"
    PAUSED_PROCESSING = "paused_processing"


class TaskStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskResult:
    status: TaskStatus
    summary: str
    details: str
