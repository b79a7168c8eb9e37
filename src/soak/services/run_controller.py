"""
Run Lifecycle Controller.

Drives one run: the foreground request loop plus one named periodic task
per background analyzer. Every mutation of run state happens under a
single ``asyncio.Lock``; collaborator calls are awaited outside it.

Lifecycle: idle -> running <-> paused -> completed | cancelled | failed
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from src.soak.core.exceptions import RunStateError
from src.soak.models.schemas import RunResult, RunStatus
from src.soak.services.run_engine import RunEngine
from src.soak.utils.logging import LogContext, get_logger
from src.soak.utils.prometheus_metrics import publish_run_metrics
from src.soak.utils.run_clock import RunClock

logger = get_logger(__name__)

TRANSITIONS: dict[RunStatus, set[RunStatus]] = {
    RunStatus.IDLE: {RunStatus.RUNNING, RunStatus.CANCELLED, RunStatus.FAILED},
    RunStatus.RUNNING: {
        RunStatus.PAUSED,
        RunStatus.COMPLETED,
        RunStatus.CANCELLED,
        RunStatus.FAILED,
    },
    RunStatus.PAUSED: {RunStatus.RUNNING, RunStatus.CANCELLED, RunStatus.FAILED},
}


def check_transition(current: RunStatus, target: RunStatus) -> None:
    if target not in TRANSITIONS.get(current, set()):
        raise RunStateError(f"Cannot move run from {current.value} to {target.value}")


class SoakRunController:
    """Schedules and supervises a single soak run."""

    def __init__(
        self,
        engine: RunEngine,
        clock: RunClock | None = None,
        shutdown_timeout_seconds: float = 30.0,
    ):
        self.engine = engine
        self.result: RunResult = engine.result
        self.clock = clock or RunClock()
        self.shutdown_timeout_seconds = shutdown_timeout_seconds

        self._lock = asyncio.Lock()
        self._gate = asyncio.Event()  # set while running
        self._cancel = asyncio.Event()
        self._done = asyncio.Event()
        self._batch_idle = asyncio.Event()  # clear while a batch is in flight
        self._batch_idle.set()
        self._pausing = False
        self._main_task: asyncio.Task | None = None
        self._tasks: dict[str, asyncio.Task] = {}
        self._stop_requested = False
        self._failure_reason: str | None = None

    @property
    def run_id(self) -> str:
        return self.result.run_id

    @property
    def status(self) -> RunStatus:
        return self.result.status

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    @property
    def background_tasks(self) -> list[str]:
        return sorted(name for name, task in self._tasks.items() if not task.done())

    def _transition(self, target: RunStatus) -> None:
        check_transition(self.result.status, target)
        logger.info(f"Run {self.run_id}: {self.result.status.value} -> {target.value}")
        self.result.status = target

    # Control surface ------------------------------------------------------

    async def start(self) -> None:
        if self.result.status != RunStatus.IDLE:
            raise RunStateError(
                f"Run {self.run_id} cannot start from {self.result.status.value}"
            )
        async with self._lock:
            self.result.start_time = self.clock.start()
            self._transition(RunStatus.RUNNING)
            self._gate.set()
            with LogContext(self.run_id):
                self.engine.record_start_alert(self.clock.now())
                self._main_task = asyncio.create_task(self._run(), name=f"soak-run-{self.run_id}")

    async def pause(self) -> bool:
        """Pause once the in-flight batch has been recorded.

        Returns False when the run was not running (no-op), when another pause
        is already draining, or when the run was stopped while draining.
        """
        async with self._lock:
            if self.result.status.is_terminal:
                raise RunStateError(f"Run {self.run_id} already {self.result.status.value}")
            if self.result.status != RunStatus.RUNNING or self._pausing:
                return False
            self._pausing = True
            self._gate.clear()

        try:
            await self._batch_idle.wait()
            async with self._lock:
                if self._cancel.is_set() or self.result.status != RunStatus.RUNNING:
                    return False
                self.clock.pause()
                self._transition(RunStatus.PAUSED)
        finally:
            self._pausing = False
        return True

    async def resume(self) -> bool:
        """Returns False when the run was not paused (no-op)."""
        async with self._lock:
            if self.result.status.is_terminal:
                raise RunStateError(f"Run {self.run_id} already {self.result.status.value}")
            if self.result.status != RunStatus.PAUSED:
                return False
            self.clock.resume()
            self._transition(RunStatus.RUNNING)
            self._gate.set()
        return True

    async def stop(self) -> None:
        """Signal cancellation; the in-flight batch drains before the run finalises."""
        if self.result.status.is_terminal:
            raise RunStateError(f"Run {self.run_id} already {self.result.status.value}")
        self._stop_requested = True
        self._cancel.set()
        self._gate.set()
        if self._main_task is None:
            await self._finalize()

    async def wait(self, timeout: float | None = None) -> RunResult:
        await asyncio.wait_for(self._done.wait(), timeout)
        return self.result

    # Scheduling -----------------------------------------------------------

    async def _run(self) -> None:
        self._start_background_tasks()
        try:
            await self._foreground_loop()
        except Exception as e:
            self._record_failure("foreground loop", e)
        finally:
            self._cancel.set()
            self._gate.set()
            await self._shutdown_background_tasks()
            await self._finalize()

    def _start_background_tasks(self) -> None:
        config = self.result.config
        schedule = config.schedule
        periodic: list[tuple[str, float, Callable[[], Awaitable[None]]]] = [
            ("telemetry", schedule.telemetry_interval_seconds, self._telemetry),
            ("alerting", schedule.alert_interval_seconds, self._alerting),
            ("reporting", config.reporting_interval_minutes * 60.0, self._reporting),
        ]
        if config.memory_leak_detection:
            periodic.append(
                ("leak_detection", schedule.leak_detection_interval_seconds, self._leak_detection)
            )
        if config.chaos_engineering:
            periodic.append(("chaos", schedule.poll_interval_seconds, self._chaos))
        if config.business_metrics_tracking:
            periodic.append(
                ("business_metrics", schedule.business_interval_seconds, self._business)
            )
        if config.health_check_monitoring:
            periodic.append(
                ("health_check", schedule.health_check_interval_seconds, self._health_check)
            )
        if config.stress_test_intervals:
            periodic.append(("stress_test", schedule.poll_interval_seconds, self._stress_test))

        for name, interval, tick in periodic:
            self._tasks[name] = asyncio.create_task(
                self._periodic(name, interval, tick), name=f"soak-{name}-{self.run_id}"
            )
        logger.info(f"Started background tasks: {', '.join(sorted(self._tasks))}")

    async def _foreground_loop(self) -> None:
        duration = self.result.config.duration_seconds
        while not self._cancel.is_set():
            await self._gate.wait()
            if self._cancel.is_set():
                break
            if self.clock.elapsed_seconds >= duration:
                logger.info(f"Run {self.run_id} reached its planned duration")
                break

            async with self._lock:
                if not self._gate.is_set():
                    continue
                self._batch_idle.clear()
                rate = self.engine.target_rate(self.clock.elapsed_seconds, self.clock.now())
                batch = self.engine.next_batch(rate)

            started = time.perf_counter()
            try:
                outcomes = await self.engine.execute_batch(batch)
                async with self._lock:
                    self.engine.record_outcomes(outcomes, self.clock.elapsed_seconds)
            finally:
                self._batch_idle.set()

            batch_run_seconds = (time.perf_counter() - started) * self.clock.time_scale
            delay = len(batch) / rate - batch_run_seconds
            if delay > 0:
                await self._wait_cancel(delay)
            else:
                await asyncio.sleep(0)

    async def _wait_cancel(self, run_seconds: float) -> bool:
        """Sleep for ``run_seconds`` of run time; True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(
                self._cancel.wait(), timeout=self.clock.to_real_seconds(run_seconds)
            )
        except asyncio.TimeoutError:
            return False
        return True

    async def _periodic(
        self, name: str, interval_seconds: float, tick: Callable[[], Awaitable[None]]
    ) -> None:
        try:
            while not self._cancel.is_set():
                if await self._wait_active(interval_seconds):
                    break
                await tick()
        except Exception as e:
            self._record_failure(f"background task '{name}'", e)

    async def _wait_active(self, run_seconds: float) -> bool:
        """Wait for ``run_seconds`` of active run time; paused time does not count.

        True if cancelled meanwhile.
        """
        due = self.clock.elapsed_seconds + run_seconds
        while True:
            await self._gate.wait()
            if self._cancel.is_set():
                return True
            remaining = due - self.clock.elapsed_seconds
            if remaining <= 0:
                return False
            if await self._wait_cancel(remaining):
                return True

    async def _shutdown_background_tasks(self) -> None:
        tasks = list(self._tasks.values())
        if not tasks:
            return
        done, pending = await asyncio.wait(tasks, timeout=self.shutdown_timeout_seconds)
        for task in pending:
            logger.warning(f"Background task {task.get_name()} did not stop in time; cancelling")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _record_failure(self, source: str, error: Exception) -> None:
        if self._failure_reason is None:
            self._failure_reason = f"{source}: {type(error).__name__}: {error}"
            logger.error(f"Run {self.run_id} failed in {source}: {error}", exc_info=error)
        self._cancel.set()
        self._gate.set()

    # Background ticks -----------------------------------------------------

    async def _telemetry(self) -> None:
        async with self._lock:
            self.engine.telemetry_tick(self.clock.elapsed_seconds, self.clock.now())

    async def _alerting(self) -> None:
        async with self._lock:
            self.engine.alerting_tick(self.clock.now())

    async def _leak_detection(self) -> None:
        async with self._lock:
            self.engine.leak_detection_tick(self.clock.now())

    async def _chaos(self) -> None:
        async with self._lock:
            self.engine.chaos_tick(self.clock.elapsed_seconds, self.clock.now())

    async def _stress_test(self) -> None:
        async with self._lock:
            self.engine.stress_test_tick(self.clock.elapsed_seconds, self.clock.now())

    async def _business(self) -> None:
        async with self._lock:
            self.engine.business_tick()

    async def _health_check(self) -> None:
        responsive = await self.engine.probe_collaborator()
        async with self._lock:
            self.engine.record_health_check(responsive, self.clock.now())

    async def _reporting(self) -> None:
        async with self._lock:
            self.engine.progress_report()
            publish_run_metrics(self.run_id, self.result.metrics, self.result.status)

    # Finalisation ---------------------------------------------------------

    async def _finalize(self) -> None:
        async with self._lock:
            if self.result.status.is_terminal:
                return
            self.clock.resume()
            try:
                self.engine.close(self.clock.elapsed_seconds)
            except Exception as e:
                self._record_failure("finalisation", e)

            if self._failure_reason is not None:
                target = RunStatus.FAILED
            elif self._stop_requested:
                target = RunStatus.CANCELLED
            else:
                target = RunStatus.COMPLETED

            now = self.clock.now()
            self._transition(target)
            self.result.failure_reason = self._failure_reason
            self.result.end_time = now

            try:
                self.result.final_report = self.engine.build_report(now)
            except Exception as e:
                logger.error(
                    f"Final report generation failed for run {self.run_id}: {e}", exc_info=e
                )
                self.result.final_report = None

            publish_run_metrics(self.run_id, self.result.metrics, self.result.status)
            m = self.result.metrics
            logger.info(
                f"Run {self.run_id} finished {target.value}: {m.total_requests} requests, "
                f"{m.effective_error_rate:.2f}% unexpected errors, {len(m.alerts)} alerts"
            )
        self._done.set()
