"""Per-session progress tracking for long-running extractions.

The HTTP layer polls (or streams) the latest event for a session while the
pipeline overwrites it.  Entries expire after a period of inactivity and
are removed either lazily on read or by the periodic sweep.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from tnprop.config import PROGRESS_TTL_SECONDS, PROGRESS_SWEEP_INTERVAL

logger = logging.getLogger(__name__)

# (step, percent, message)
ProgressCallback = Callable[[str, int, str], None]


class ProgressStep(str, Enum):
    PARSING = "parsing"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    PROCESSING = "processing"
    COMPLETE = "complete"
    WAITING = "waiting"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    step: str
    percent: int
    message: str
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "percent": self.percent,
            "message": self.message,
            "timestamp": self.timestamp,
        }


def noop_progress(step: str, percent: int, message: str) -> None:
    pass


class ProgressTracker:
    """Latest progress event per session, with inactivity expiry.

    Writes are last-write-wins.  The table is guarded by a lock because
    sync FastAPI routes read it from the threadpool while the event loop
    writes it.
    """

    def __init__(self, ttl_seconds: float = PROGRESS_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._events: dict[str, ProgressEvent] = {}
        self._lock = threading.Lock()

    def set_progress(self, session_id: str, step: str, percent: int, message: str) -> ProgressEvent:
        event = ProgressEvent(
            step=str(step.value if isinstance(step, ProgressStep) else step),
            percent=int(percent),
            message=message,
            timestamp=self._clock(),
        )
        with self._lock:
            self._events[session_id] = event
        return event

    def get_progress(self, session_id: str) -> ProgressEvent | None:
        with self._lock:
            event = self._events.get(session_id)
            if event is None:
                return None
            if self._clock() - event.timestamp > self.ttl_seconds:
                del self._events[session_id]
                return None
            return event

    def clear_progress(self, session_id: str) -> None:
        with self._lock:
            self._events.pop(session_id, None)

    def cleanup(self) -> int:
        """Drop every stale entry. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            stale = [sid for sid, ev in self._events.items() if now - ev.timestamp > self.ttl_seconds]
            for sid in stale:
                del self._events[sid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def sink(self, session_id: str) -> ProgressCallback:
        """Return a progress callback bound to one pipeline run.

        Percent is clamped to 0–100 and never drops below the highest value
        already emitted by this callback, so a polling client never sees
        the bar move backwards.
        """
        high_water = 0

        def _report(step: str, percent: int, message: str) -> None:
            nonlocal high_water
            value = max(0, min(100, int(percent)))
            if value < high_water:
                value = high_water
            high_water = value
            self.set_progress(session_id, step, value, message)
            logger.debug(f"[progress {session_id}] {step}: {value}% - {message}")

        return _report


async def run_sweeper(tracker: ProgressTracker, interval: float = PROGRESS_SWEEP_INTERVAL) -> None:
    """Periodically purge stale progress entries until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = tracker.cleanup()
        if removed:
            logger.info(f"Progress sweep: removed {removed} stale session(s)")
