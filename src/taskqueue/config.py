from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


DEFAULT_INDEX_KEY = "id"
DEFAULT_EXEC_TIMEOUT_SECONDS = 120.0
DEFAULT_REPORT_DETAILS_MAX_CHARS = 4000


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class QueueConfig:
    index_key: str = DEFAULT_INDEX_KEY
    remove_on_dispatch: bool = False


@dataclass(frozen=True)
class RunnerConfig:
    queue: QueueConfig
    exec_timeout_seconds: float = DEFAULT_EXEC_TIMEOUT_SECONDS
    dry_run: bool = False
    report_details_max_chars: int = DEFAULT_REPORT_DETAILS_MAX_CHARS


def _parse_positive_float(name: str, raw_value: str, default: float) -> float:
    value = (raw_value or "").strip()
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw_value!r}") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be > 0, got {parsed}")
    return parsed


def _parse_positive_int(name: str, raw_value: str, default: int) -> int:
    value = (raw_value or "").strip()
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw_value!r}") from exc
    if parsed <= 0:
        raise ConfigError(f"{name} must be > 0, got {parsed}")
    return parsed


def _parse_bool(name: str, raw_value: str, default: bool) -> bool:
    value = (raw_value or "").strip().lower()
    if not value:
        return default
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    raise ConfigError(f"{name} must be a boolean value, got {raw_value!r}")


def load_queue_config(env: Mapping[str, str] | None = None) -> QueueConfig:
    source = env if env is not None else os.environ
    # blank key falls back to the default instead of failing
    index_key = (source.get("TASKQUEUE_INDEX_KEY") or "").strip() or DEFAULT_INDEX_KEY
    remove_on_dispatch = _parse_bool(
        "TASKQUEUE_REMOVE_ON_DISPATCH",
        source.get("TASKQUEUE_REMOVE_ON_DISPATCH", ""),
        False,
    )
    return QueueConfig(index_key=index_key, remove_on_dispatch=remove_on_dispatch)


def load_config(env: Mapping[str, str] | None = None) -> RunnerConfig:
    source = env if env is not None else os.environ
    exec_timeout_seconds = _parse_positive_float(
        "TASKQUEUE_EXEC_TIMEOUT_SECONDS",
        source.get("TASKQUEUE_EXEC_TIMEOUT_SECONDS", ""),
        DEFAULT_EXEC_TIMEOUT_SECONDS,
    )
    dry_run = _parse_bool("TASKQUEUE_DRY_RUN", source.get("TASKQUEUE_DRY_RUN", ""), False)
    report_details_max_chars = _parse_positive_int(
        "TASKQUEUE_REPORT_DETAILS_MAX_CHARS",
        source.get("TASKQUEUE_REPORT_DETAILS_MAX_CHARS", ""),
        DEFAULT_REPORT_DETAILS_MAX_CHARS,
    )

    return RunnerConfig(
        queue=load_queue_config(source),
        exec_timeout_seconds=exec_timeout_seconds,
        dry_run=dry_run,
        report_details_max_chars=report_details_max_chars,
    )
