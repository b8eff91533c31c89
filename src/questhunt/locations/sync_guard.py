"""In-process guard against stale-skippable and overlapping import runs.

This is a single-process mutex substitute: ``check`` and ``running`` are
called back to back with no await between them, which the event loop makes
atomic. Several API processes each hold their own guard and may run the
import concurrently.

Forced runs skip the in-flight check, so runs can overlap; the guard counts
them and stays in flight until the last one exits.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


def now_ms() -> int:
    return int(time.time() * 1000)


class SyncGuard:
    """Remembers the last successful sync and how many runs are active."""

    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_ms = ttl_seconds * 1000
        self.last_sync_ms = 0
        self.active_runs = 0
        self.last_error: str | None = None

    @property
    def in_flight(self) -> bool:
        return self.active_runs > 0

    def check(self, sync_if_stale: bool = True, now: int | None = None) -> str | None:
        """Return why a run should be skipped ("fresh", "inflight"), or None."""
        if not sync_if_stale:
            return None
        now = now_ms() if now is None else now
        if now - self.last_sync_ms < self.ttl_ms:
            return "fresh"
        if self.in_flight:
            return "inflight"
        return None

    @asynccontextmanager
    async def running(self) -> AsyncIterator[None]:
        self.active_runs += 1
        try:
            yield
        finally:
            self.active_runs -= 1

    def mark_synced(self, now: int | None = None) -> int:
        self.last_sync_ms = now_ms() if now is None else now
        self.last_error = None
        return self.last_sync_ms

    def record_failure(self, message: str) -> None:
        """Remember why the last run failed; the last sync time is kept."""
        self.last_error = message

    def state(self) -> dict[str, int | bool | str | None]:
        return {
            "last_sync_ms": self.last_sync_ms,
            "in_flight": self.in_flight,
            "active_runs": self.active_runs,
            "last_error": self.last_error,
        }
