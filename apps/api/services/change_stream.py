"""Change streams built on bounded-interval snapshot reads.

Each tick re-reads a snapshot and yields it only when it differs from the last
one delivered, so subscribers see every change within one interval.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from database import async_session_maker

MIN_INTERVAL_SECONDS = 0.1


def snapshot_fingerprint(snapshot: Any) -> str:
    return json.dumps(snapshot, sort_keys=True, default=str)


def format_sse(event: str, data: Any) -> str:
    """Encode one server-sent event frame."""
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


async def watch_snapshots(
    fetch: Callable[[], Awaitable[Any]],
    interval_seconds: float,
    *,
    max_events: Optional[int] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncIterator[Any]:
    """Yield ``fetch()`` results whenever they change; the first snapshot is always yielded."""
    last_fingerprint: Optional[str] = None
    emitted = 0
    delay = max(float(interval_seconds), MIN_INTERVAL_SECONDS)
    while True:
        snapshot = await fetch()
        fingerprint = snapshot_fingerprint(snapshot)
        if fingerprint != last_fingerprint:
            last_fingerprint = fingerprint
            yield snapshot
            emitted += 1
            if max_events is not None and emitted >= max_events:
                return
        await sleep(delay)


def session_reader(read: Callable[[Any], Awaitable[Any]], session_factory=None) -> Callable[[], Awaitable[Any]]:
    """Wrap ``read(db)`` so each tick runs on a short-lived session."""
    factory = session_factory or async_session_maker

    async def _fetch() -> Any:
        async with factory() as db:
            return await read(db)

    return _fetch
