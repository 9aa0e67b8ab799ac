"""
Scheduling helpers for the Aptus booking bot

Runs the sync cycle on a fixed interval and paces login retries.
"""
import asyncio
import time
import logging
from datetime import datetime, timedelta
from typing import Callable, Awaitable, Optional
import pytz

logger = logging.getLogger(__name__)


class IntervalScheduler:
    """
    Fixed-rate driver for a recurring job.

    The job is awaited to completion before the next trigger is considered,
    so runs never overlap. If a run overruns the interval the next one starts
    immediately instead of queueing up missed triggers.
    """

    def __init__(self, interval_seconds: float, timezone: str = "Europe/Stockholm"):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval = interval_seconds
        self.tz = pytz.timezone(timezone)
        self.runs = 0
        self._cancelled = False

    def now(self) -> datetime:
        """Get current time in configured timezone"""
        return datetime.now(self.tz)

    def cancel(self):
        """Stop after the run in progress"""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def run_forever(
        self,
        job: Callable[[], Awaitable],
        max_runs: Optional[int] = None,
        initial_delay: float = 0.0,
    ):
        """
        Run job every interval seconds until cancelled.

        Args:
            job: Async callable, awaited to completion on every trigger
            max_runs: Stop after this many runs (None = forever)
            initial_delay: Seconds to wait before the first run
        """
        self._cancelled = False
        if initial_delay > 0:
            await asyncio.sleep(initial_delay)

        while not self._cancelled:
            started = time.monotonic()
            logger.debug(f"Run {self.runs + 1} starting at {self.now().isoformat()}")
            try:
                await job()
            except Exception as e:
                # A broken run must not kill the schedule
                logger.error(f"Scheduled job failed: {e}", exc_info=True)
            self.runs += 1

            if max_runs is not None and self.runs >= max_runs:
                break

            remaining = self.interval - (time.monotonic() - started)
            if remaining > 0:
                await self._sleep(remaining)

        logger.info(f"Scheduler stopped after {self.runs} run(s)")

    async def _sleep(self, seconds: float):
        """Sleep in short chunks so cancel() takes effect promptly"""
        deadline = time.monotonic() + seconds
        while not self._cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return
            await asyncio.sleep(min(remaining, 1.0))

    def next_run(self, last_start: datetime) -> datetime:
        return last_start + timedelta(seconds=self.interval)


class RetryStrategy:
    """
    Configurable retry strategy for login attempts.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_ms: int = 1000,
        max_delay_ms: int = 5000,
        exponential_backoff: bool = False
    ):
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.exponential_backoff = exponential_backoff
        self.attempts = 0

    def should_retry(self) -> bool:
        """Check if another attempt should be made"""
        return self.attempts < self.max_attempts

    def record_attempt(self):
        """Record an attempt"""
        self.attempts += 1

    def delay_ms(self) -> int:
        if self.exponential_backoff:
            return min(
                self.base_delay_ms * (2 ** (self.attempts - 1)),
                self.max_delay_ms
            )
        return self.base_delay_ms

    async def wait(self):
        """Wait appropriate time before next attempt"""
        await asyncio.sleep(self.delay_ms() / 1000)

    def reset(self):
        """Reset attempt counter"""
        self.attempts = 0
