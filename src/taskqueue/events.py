from __future__ import annotations

import json
import sys
from typing import Callable, TextIO

EventSink = Callable[..., None]


def emit_event(name: str, *, stream: TextIO | None = None, **fields) -> None:
    payload = {"event": name, **fields}
    print(
        json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str),
        file=stream if stream is not None else sys.stdout,
        flush=True,
    )
