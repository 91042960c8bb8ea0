"""One-shot timer schedulers used for sequence timeouts.

A matcher never sleeps; it asks a scheduler to call it back later and keeps
the returned handle so the callback can be cancelled before any other
transition runs.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerScheduler(Protocol):
    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


@dataclass
class PendingTimeout:
    deadline: float
    timeout_ms: int
    generation: int
    callback: Callable[[], None] = field(repr=False)


@dataclass
class DeadlineHandle:
    scheduler: "DeadlineScheduler"
    generation: int

    def cancel(self) -> None:
        self.scheduler._pending.pop(self.generation, None)


class DeadlineScheduler:
    """Polled scheduler: the host calls ``process_timeouts`` from its loop.

    ``clock`` returns seconds and defaults to ``time.monotonic``; tests pass a
    fake clock to step time deterministically.
    """

    def __init__(self, *, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._pending: Dict[int, PendingTimeout] = {}
        self._counter = 0

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> DeadlineHandle:
        self._counter += 1
        self._pending[self._counter] = PendingTimeout(
            deadline=self._clock() + (delay_ms / 1000.0),
            timeout_ms=delay_ms,
            generation=self._counter,
            callback=callback,
        )
        return DeadlineHandle(self, self._counter)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def next_deadline(self) -> Optional[float]:
        if not self._pending:
            return None
        return min(timer.deadline for timer in self._pending.values())

    def process_timeouts(self, now: Optional[float] = None) -> int:
        """Fire every timer whose deadline has passed; returns how many fired."""

        current = self._clock() if now is None else now
        due = sorted(
            (timer for timer in self._pending.values() if timer.deadline <= current),
            key=lambda timer: (timer.deadline, timer.generation),
        )
        return self._fire(due)

    def force(self) -> int:
        """Fire all outstanding timers regardless of deadline."""

        due = sorted(self._pending.values(), key=lambda timer: timer.generation)
        return self._fire(due)

    def _fire(self, due: list[PendingTimeout]) -> int:
        fired = 0
        for timer in due:
            # an earlier callback may have cancelled this one
            if self._pending.pop(timer.generation, None) is None:
                continue
            timer.callback()
            fired += 1
        return fired


class AsyncioScheduler:
    """Scheduler backed by ``loop.call_later`` for asyncio hosts."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def schedule(
        self, delay_ms: int, callback: Callable[[], None]
    ) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000.0, callback)


__all__ = [
    "AsyncioScheduler",
    "DeadlineHandle",
    "DeadlineScheduler",
    "PendingTimeout",
    "TimerHandle",
    "TimerScheduler",
]
