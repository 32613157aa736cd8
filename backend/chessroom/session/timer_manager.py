"""Named one-shot timers and recurring sweeps for the session."""

import asyncio
import contextlib
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum

import structlog

logger = structlog.get_logger()


class TimerKind(StrEnum):
    """Purpose of a one-shot timer. At most one timer of each kind is outstanding."""

    DISCONNECT_GRACE = "disconnect_grace"
    RESET = "reset"  # shared by the post-game-over and post-expiry delays


# Callback type: (kind, generation) -> Awaitable[None]
TimerCallback = Callable[[TimerKind, int], Awaitable[None]]


class TimerManager:
    """Schedule, replace and cancel session timers.

    Scheduling a kind that is already pending cancels the earlier timer first.
    Every schedule or cancel bumps the kind's generation; a firing timer
    reports the generation it was scheduled under, and the receiver calls
    consume() to find out whether that timer is still the current one. This
    makes a fire that raced with a cancel (the callback was already waiting
    for the session lock) harmless.
    """

    def __init__(self, on_fire: TimerCallback) -> None:
        self._on_fire = on_fire
        self._tasks: dict[TimerKind, asyncio.Task[None]] = {}
        self._deadlines: dict[TimerKind, float] = {}  # kind -> time.monotonic() deadline
        self._generations: dict[TimerKind, int] = dict.fromkeys(TimerKind, 0)
        self._recurring: dict[str, asyncio.Task[None]] = {}

    def schedule(self, kind: TimerKind, delay: float) -> int:
        """Start a timer of the given kind, replacing any pending one. Returns its generation."""
        self.cancel(kind)
        generation = self._generations[kind]
        self._deadlines[kind] = time.monotonic() + delay
        self._tasks[kind] = asyncio.create_task(self._run(kind, generation, delay))
        return generation

    def cancel(self, kind: TimerKind) -> None:
        """Cancel a pending timer. Safe to call when nothing is pending.

        A timer whose own callback is running is released rather than
        cancelled, so the callback is not aborted mid-way.
        """
        self._generations[kind] += 1
        self._deadlines.pop(kind, None)
        task = self._tasks.pop(kind, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def cancel_all(self) -> None:
        for kind in TimerKind:
            self.cancel(kind)

    def consume(self, kind: TimerKind, generation: int) -> bool:
        """Claim a fired timer. Returns False if it was cancelled or replaced since scheduling."""
        if self._generations[kind] != generation or kind not in self._tasks:
            return False
        self._tasks.pop(kind, None)
        self._deadlines.pop(kind, None)
        self._generations[kind] += 1
        return True

    def is_active(self, kind: TimerKind) -> bool:
        return kind in self._tasks

    def remaining(self, kind: TimerKind) -> float | None:
        """Seconds left on a pending timer, or None when nothing is pending."""
        deadline = self._deadlines.get(kind)
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def start_recurring(self, name: str, interval: float, callback: Callable[[], Awaitable[None]]) -> None:
        """Run callback every interval seconds until stop_recurring(name)."""
        existing = self._recurring.get(name)
        if existing is not None and not existing.done():
            existing.cancel()
        self._recurring[name] = asyncio.create_task(self._run_recurring(name, interval, callback))

    def is_recurring(self, name: str) -> bool:
        task = self._recurring.get(name)
        return task is not None and not task.done()

    async def stop_recurring(self, name: str) -> None:
        task = self._recurring.pop(name, None)
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def shutdown(self) -> None:
        """Cancel every timer and stop every recurring sweep."""
        self.cancel_all()
        for name in list(self._recurring):
            await self.stop_recurring(name)

    async def _run(self, kind: TimerKind, generation: int, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await self._on_fire(kind, generation)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("timer callback failed", timer=kind)

    async def _run_recurring(self, name: str, interval: float, callback: Callable[[], Awaitable[None]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await callback()
            except Exception:
                logger.exception("recurring callback failed", sweep=name)
