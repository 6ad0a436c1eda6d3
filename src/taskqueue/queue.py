from __future__ import annotations

import asyncio
import concurrent.futures as cf
import inspect
from collections import deque
from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Mapping

from .config import DEFAULT_INDEX_KEY, QueueConfig
from .events import EventSink, emit_event
from .models import QueueState


_MISSING = object()

TaskHandler = Callable[[Any], Any]
_Entry = tuple[Any, Any]


def _read_index_value(task: Any, index_key: str) -> Any:
    if isinstance(task, Mapping):
        value = task.get(index_key, _MISSING)
    else:
        value = getattr(task, index_key, _MISSING)
    if value is _MISSING:
        return _MISSING
    try:
        hash(value)
    except TypeError:
        return _MISSING
    return value


def _is_task_batch(tasks: Any) -> bool:
    # namedtuples are single tasks, not batches
    return isinstance(tasks, (list, tuple)) and not hasattr(tasks, "_fields")


class TaskQueue:
    """Ordered single-consumer queue that runs one task handler call at a time.

    The handler may return an awaitable, a ``concurrent.futures.Future`` or a
    plain value. Whatever it returns, success or failure, the queue moves on to
    the next task once that signal completes unless it has been paused.
    """

    def __init__(
        self,
        handler: TaskHandler,
        *,
        index_key: str = DEFAULT_INDEX_KEY,
        remove_on_dispatch: bool = False,
        loop: asyncio.AbstractEventLoop | None = None,
        log_events: bool = False,
        event_sink: EventSink | None = None,
    ) -> None:
        self._handler = handler
        self._index_key = (index_key or "").strip() or DEFAULT_INDEX_KEY
        self._remove_on_dispatch = remove_on_dispatch
        self._loop = loop
        self._log_events = log_events or event_sink is not None
        self._event_sink = event_sink or emit_event

        self._state = QueueState.WAITING
        self._items: deque[_Entry] = deque()
        self._indexes: dict[Any, int] = {}
        self._next_marker = 0
        self._in_flight: _Entry | None = None
        self._outcome: asyncio.Future | None = None
        self._event_error: Exception | None = None
        self._drained = asyncio.Event()
        self._drained.set()

    @classmethod
    def from_config(cls, handler: TaskHandler, config: QueueConfig, **kwargs: Any) -> TaskQueue:
        return cls(
            handler,
            index_key=config.index_key,
            remove_on_dispatch=config.remove_on_dispatch,
            **kwargs,
        )

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def tasks(self) -> tuple[Any, ...]:
        return tuple(task for task, _ in self._items)

    @property
    def indexes(self) -> Mapping[Any, int]:
        return MappingProxyType(self._indexes)

    @property
    def index_key(self) -> str:
        return self._index_key

    @property
    def remove_on_dispatch(self) -> bool:
        return self._remove_on_dispatch

    @property
    def event_error(self) -> Exception | None:
        return self._event_error

    @property
    def in_flight(self) -> Any:
        return self._in_flight[0] if self._in_flight is not None else None

    def add(self, tasks: Any, *, process: bool = True) -> Any:
        was_empty = self.is_empty()
        if _is_task_batch(tasks):
            result: Any = [self._add_task(task) for task in tasks]
        else:
            result = self._add_task(tasks)

        if was_empty and process:
            self.process()
        return result

    def is_empty(self) -> bool:
        return not self._items

    def process(self) -> None:
        """Dispatch the head task if the queue is idle and not paused."""
        if self._state is not QueueState.WAITING:
            return
        if not self._items:
            self._sync_drained()
            return

        loop = self._get_loop()
        entry = self._shift() if self._remove_on_dispatch else self._items[0]
        task, index_value = entry
        self._state = QueueState.PROCESSING
        self._in_flight = entry
        self._drained.clear()
        self._event(
            "task_dispatched",
            task_key=self._loggable(index_value),
            queued=len(self._items),
        )
        self._outcome = self._invoke(task, loop)
        self._outcome.add_done_callback(partial(self._on_complete, entry))

    def pause(self) -> None:
        if self._state is QueueState.PROCESSING:
            self._state = QueueState.PAUSED_PROCESSING
        elif self._state is QueueState.WAITING:
            self._state = QueueState.PAUSED
        else:
            return
        self._event("queue_paused", state=self._state.value, queued=len(self._items))
        self._sync_drained()

    def resume(self) -> None:
        if self._state is QueueState.PAUSED_PROCESSING:
            self._state = QueueState.PROCESSING
            self._event("queue_resumed", state=self._state.value, queued=len(self._items))
        elif self._state is QueueState.PAUSED:
            self._state = QueueState.WAITING
            self._event("queue_resumed", state=self._state.value, queued=len(self._items))
            self.process()
        self._sync_drained()

    def clear(self) -> None:
        removed = len(self._items)
        self._items.clear()
        self._indexes.clear()
        self._event("queue_cleared", removed=removed, state=self._state.value)
        self._sync_drained()

    async def join(self) -> None:
        await self._drained.wait()

    def __len__(self) -> int:
        return len(self._items)

    def _add_task(self, task: Any) -> Any:
        if self._is_duplicate(task):
            self._event(
                "task_duplicate",
                task_key=self._loggable(_read_index_value(task, self._index_key)),
            )
        else:
            self._push(task)
        return task

    def _is_duplicate(self, task: Any) -> bool:
        index_value = _read_index_value(task, self._index_key)
        return index_value is not _MISSING and index_value in self._indexes

    def _push(self, task: Any) -> None:
        index_value = _read_index_value(task, self._index_key)
        self._items.append((task, index_value))
        if index_value is not _MISSING:
            self._indexes[index_value] = self._next_marker
        self._next_marker += 1
        self._drained.clear()

    def _shift(self) -> _Entry | None:
        if not self._items:
            return None
        entry = self._items.popleft()
        if entry[1] is not _MISSING:
            self._indexes.pop(entry[1], None)
        return entry

    def _invoke(self, task: Any, loop: asyncio.AbstractEventLoop) -> asyncio.Future:
        try:
            signal = self._handler(task)
            if isinstance(signal, cf.Future):
                return asyncio.wrap_future(signal, loop=loop)
            if inspect.isawaitable(signal):
                return asyncio.ensure_future(signal, loop=loop)
        except Exception as exc:
            failed = loop.create_future()
            failed.set_exception(exc)
            return failed

        done = loop.create_future()
        done.set_result(signal)
        return done

    def _on_complete(self, entry: _Entry, outcome: asyncio.Future) -> None:
        task_key = self._loggable(entry[1])
        if outcome.cancelled():
            self._event("task_failed", task_key=task_key, error="cancelled")
        elif outcome.exception() is not None:
            self._event("task_failed", task_key=task_key, error=repr(outcome.exception()))
        else:
            self._event("task_completed", task_key=task_key)

        self._in_flight = None
        self._outcome = None
        # clear() may already have dropped the completed task
        if not self._remove_on_dispatch and self._items and self._items[0] is entry:
            self._shift()

        if self._state is QueueState.PROCESSING:
            self._state = QueueState.WAITING
            self.process()
        elif self._state is QueueState.PAUSED_PROCESSING:
            self._state = QueueState.PAUSED
        self._sync_drained()

    def _sync_drained(self) -> None:
        idle = self._state is QueueState.WAITING and not self._items and self._in_flight is None
        if idle and not self._drained.is_set():
            self._drained.set()
            self._event("queue_drained")
        elif not idle:
            self._drained.clear()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _event(self, name: str, **fields: Any) -> None:
        if not self._log_events:
            return
        try:
            self._event_sink(name, **fields)
        except Exception as exc:
            # a failing sink is dropped so dispatch keeps going
            self._log_events = False
            self._event_error = exc

    @staticmethod
    def _loggable(index_value: Any) -> Any:
        return None if index_value is _MISSING else index_value
