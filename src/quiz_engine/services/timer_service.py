"""
Countdown timer for exam sessions.

Each handle owns one asyncio task that ticks once per interval with strictly
decreasing remaining-seconds values, reaches exactly 0, then fires its expiry
callback once. Stopping is idempotent and suppresses every later callback.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from quiz_engine.domain.exceptions import TimerInitializationError
from quiz_engine.domain.ports import DurationResolver

logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]
ExpireCallback = Callable[[], None]
SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], float]


class TimerHandle:
    """Owned, independently cancellable countdown."""

    def __init__(
        self,
        duration: int,
        on_tick: TickCallback,
        on_expire: ExpireCallback,
        interval: float,
        sleep: SleepFunc,
        clock: Optional[ClockFunc] = None,
    ):
        self.duration = duration
        self._remaining = duration
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._interval = interval
        self._sleep = sleep
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._paused = False
        self._stopped = False
        self._expired = False
        # Deadline of the next tick, and the part of an interval already spent when paused
        self._deadline: Optional[float] = None
        self._carried = 0.0

    @property
    def remaining(self) -> int:
        """Whole seconds left; frozen while paused."""
        return self._remaining

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self) -> None:
        if self._stopped or self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def pause(self) -> None:
        if self._stopped or self._paused or self._expired:
            return
        self._paused = True
        if self._deadline is not None:
            left = max(0.0, self._deadline - self._now())
            self._carried = min(self._interval, max(0.0, self._interval - left))
        self._cancel_task()
        logger.debug(f"Timer paused with {self._remaining}s remaining")

    def resume(self) -> None:
        if self._stopped or not self._paused:
            return
        self._paused = False
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Timer resumed with {self._remaining}s remaining")

    def stop(self) -> None:
        """Stop the countdown. Safe to call repeatedly, after expiry, or from a callback."""
        if self._stopped:
            return
        self._stopped = True
        self._cancel_task()
        logger.debug(f"Timer stopped with {self._remaining}s remaining")

    def _cancel_task(self) -> None:
        task = self._task
        self._task = None
        # The expiry callback may stop the handle from inside its own task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    def _superseded(self) -> bool:
        return self._stopped or self._paused or self._task is not asyncio.current_task()

    async def _run(self) -> None:
        # A resumed countdown owes only the rest of the interval it was paused in
        self._deadline = self._now() - self._carried + self._interval
        self._carried = 0.0
        try:
            while self._remaining > 0:
                await self._sleep(max(0.0, self._deadline - self._now()))
                if self._superseded():
                    return
                self._remaining -= 1
                self._deadline += self._interval
                self._on_tick(self._remaining)

            if self._superseded() or self._expired:
                return
            self._expired = True
            self._on_expire()
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Timer callback failed: {e}")
            raise


class TimerService:
    """Factory for countdown handles plus duration resolution."""

    def __init__(
        self,
        interval: float = 1.0,
        sleep: Optional[SleepFunc] = None,
        clock: Optional[ClockFunc] = None,
    ):
        if interval <= 0:
            raise ValueError("Timer interval must be positive")
        self.interval = interval
        self._sleep = sleep or asyncio.sleep
        self._clock = clock

    def start(self, duration: int, on_tick: TickCallback, on_expire: ExpireCallback) -> TimerHandle:
        """Start a countdown of ``duration`` whole seconds."""
        if duration <= 0:
            raise TimerInitializationError(f"Timer duration must be positive, got {duration}")

        handle = TimerHandle(
            duration, on_tick, on_expire, self.interval, self._sleep, clock=self._clock
        )
        handle.start()
        logger.info(f"Timer started for {duration}s")
        return handle

    def pause(self, handle: TimerHandle) -> None:
        handle.pause()

    def resume(self, handle: TimerHandle) -> None:
        handle.resume()

    def stop(self, handle: Optional[TimerHandle]) -> None:
        if handle is not None:
            handle.stop()

    async def resolve_duration(
        self,
        resolver: DurationResolver,
        exam_category: str,
        subject_slug: Optional[str] = None,
        year: Optional[int] = None,
    ) -> int:
        """
        Resolve a session's duration once, at session start.

        Raises:
            TimerInitializationError: if the resolver fails or returns a non-positive value
        """
        try:
            duration = await resolver.resolve_duration(exam_category, subject_slug, year)
        except Exception as e:
            logger.error(f"Duration resolution failed for {exam_category}: {e}")
            raise TimerInitializationError(f"Could not resolve exam duration: {e}") from e

        if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise TimerInitializationError(f"Resolved duration must be a positive integer: {duration!r}")

        return duration


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"
