"""
Run clock.

Tracks active run time (pauses excluded) and a simulated wall clock. A
``time_scale`` above 1 compresses a run: one real second counts as
``time_scale`` run seconds, so a 72 hour schedule can be exercised in
minutes.
"""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timedelta

from src.soak.models.schemas import utc_now


class RunClock:
    def __init__(
        self,
        start_wall: datetime | None = None,
        time_scale: float = 1.0,
        time_source: Callable[[], float] = time.monotonic,
    ):
        if time_scale <= 0:
            raise ValueError(f"time_scale must be positive, got {time_scale}")
        self.time_scale = time_scale
        self._start_wall = start_wall
        self._time_source = time_source
        self._started_at: float | None = None
        self._paused_at: float | None = None
        self._paused_total = 0.0

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def paused(self) -> bool:
        return self._paused_at is not None

    @property
    def start_wall(self) -> datetime | None:
        return self._start_wall

    def start(self) -> datetime:
        if self.started:
            raise RuntimeError("RunClock already started")
        self._started_at = self._time_source()
        if self._start_wall is None:
            self._start_wall = utc_now()
        return self._start_wall

    def pause(self) -> None:
        if self.started and not self.paused:
            self._paused_at = self._time_source()

    def resume(self) -> None:
        if self._paused_at is not None:
            self._paused_total += self._time_source() - self._paused_at
            self._paused_at = None

    def _real_elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._time_source() - self._started_at

    @property
    def elapsed_seconds(self) -> float:
        """Active run seconds, scaled, excluding time spent paused."""
        if self._started_at is None:
            return 0.0
        paused = self._paused_total
        if self._paused_at is not None:
            paused += self._time_source() - self._paused_at
        return max(0.0, (self._real_elapsed() - paused) * self.time_scale)

    @property
    def elapsed_hours(self) -> float:
        return self.elapsed_seconds / 3600.0

    def now(self) -> datetime:
        """Simulated wall clock; paused time still advances it."""
        if self._start_wall is None:
            return utc_now()
        return self._start_wall + timedelta(seconds=self._real_elapsed() * self.time_scale)

    def to_real_seconds(self, run_seconds: float) -> float:
        return max(0.0, run_seconds) / self.time_scale

    async def sleep(self, run_seconds: float) -> None:
        await asyncio.sleep(self.to_real_seconds(run_seconds))
