"""Integration tests for the run lifecycle controller."""

import asyncio

import pytest

from src.soak.core.exceptions import RunStateError, TelemetryError
from src.soak.hal.mock_collaborator import FlakyCollaborator, HangingCollaborator
from src.soak.hal.resource_telemetry import ScriptedTelemetry
from src.soak.models.schemas import RunResult, RunStatus, ScheduleConfig
from src.soak.services.run_controller import SoakRunController, check_transition
from src.soak.services.run_engine import RunEngine
from src.soak.utils.run_clock import RunClock

pytestmark = pytest.mark.integration

# One hour of run time in 0.1 real seconds
FAST_TIME_SCALE = 36000.0


class FailingTelemetry:
    def sample(self, context):
        raise TelemetryError("sensor offline")


class CountingTelemetry(ScriptedTelemetry):
    def __init__(self, snapshots):
        super().__init__(snapshots)
        self.samples = 0

    def sample(self, context):
        self.samples += 1
        return super().sample(context)


@pytest.fixture
def make_controller(make_snapshot):
    def _make(config, time_scale=FAST_TIME_SCALE, telemetry=None, collaborator=None):
        engine = RunEngine(
            RunResult(config=config),
            collaborator or FlakyCollaborator(0.0),
            telemetry or ScriptedTelemetry([make_snapshot()]),
        )
        return SoakRunController(engine, RunClock(time_scale=time_scale), 5.0)

    return _make


class TestCompletion:
    @pytest.mark.asyncio
    async def test_runs_to_completion_with_report(self, make_controller, quiet_run_config):
        controller = make_controller(quiet_run_config)

        await controller.start()
        result = await controller.wait(20)

        assert result.status == RunStatus.COMPLETED
        assert result.failure_reason is None
        assert result.end_time is not None and result.end_time >= result.start_time
        assert result.final_report is not None
        assert not result.final_report.degraded
        assert result.metrics.total_requests > 0
        assert result.metrics.elapsed_seconds >= quiet_run_config.duration_seconds
        assert controller.background_tasks == []

    @pytest.mark.asyncio
    async def test_start_alert_recorded(self, make_controller, quiet_run_config):
        controller = make_controller(quiet_run_config)
        await controller.start()
        result = await controller.wait(20)

        first = result.metrics.alerts[0]
        assert first.resolved and first.auto_resolved


class TestControl:
    @pytest.mark.asyncio
    async def test_pause_and_resume_are_idempotent(self, make_controller, quiet_run_config):
        controller = make_controller(quiet_run_config, time_scale=1.0)
        await controller.start()
        await asyncio.sleep(0.05)
        tasks_before = controller.background_tasks

        assert await controller.pause() is True
        assert await controller.pause() is False
        assert controller.status == RunStatus.PAUSED

        assert await controller.resume() is True
        assert await controller.resume() is False
        assert controller.status == RunStatus.RUNNING
        assert controller.background_tasks == tasks_before

        await controller.stop()
        result = await controller.wait(10)
        assert result.status == RunStatus.CANCELLED
        assert result.final_report is not None

    @pytest.mark.asyncio
    async def test_paused_run_stops_cleanly(self, make_controller, quiet_run_config):
        controller = make_controller(quiet_run_config, time_scale=1.0)
        await controller.start()
        await controller.pause()

        await controller.stop()
        result = await controller.wait(10)

        assert result.status == RunStatus.CANCELLED
        assert controller.background_tasks == []

    @pytest.mark.asyncio
    async def test_pause_waits_for_in_flight_batch(self, make_controller, quiet_run_config):
        controller = make_controller(
            quiet_run_config, time_scale=1.0, collaborator=HangingCollaborator(0.5)
        )
        await controller.start()
        await asyncio.sleep(0.1)
        assert controller.result.metrics.total_requests == 0

        assert await controller.pause() is True
        assert controller.status == RunStatus.PAUSED
        recorded = controller.result.metrics.total_requests
        assert recorded > 0

        await asyncio.sleep(0.7)
        assert controller.result.metrics.total_requests == recorded
        assert controller.status == RunStatus.PAUSED

        await controller.stop()
        result = await controller.wait(10)
        assert result.status == RunStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_concurrent_pause_drains_once(self, make_controller, quiet_run_config):
        controller = make_controller(
            quiet_run_config, time_scale=1.0, collaborator=HangingCollaborator(0.3)
        )
        await controller.start()
        await asyncio.sleep(0.05)

        first, second = await asyncio.gather(controller.pause(), controller.pause())

        assert (first, second) == (True, False)
        assert controller.status == RunStatus.PAUSED
        await controller.stop()
        await controller.wait(10)

    @pytest.mark.asyncio
    async def test_stop_while_pause_drains(self, make_controller, quiet_run_config):
        controller = make_controller(
            quiet_run_config, time_scale=1.0, collaborator=HangingCollaborator(0.3)
        )
        await controller.start()
        await asyncio.sleep(0.05)

        pausing = asyncio.create_task(controller.pause())
        await asyncio.sleep(0.05)
        await controller.stop()

        assert await pausing is False
        result = await controller.wait(10)
        assert result.status == RunStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_background_timers_suspended_while_paused(
        self, make_controller, make_config, make_snapshot
    ):
        config = make_config(
            load_variation=False,
            chaos_engineering=False,
            stress_test_intervals=False,
            schedule=ScheduleConfig(telemetry_interval_seconds=0.4),
        )
        telemetry = CountingTelemetry([make_snapshot()])
        controller = make_controller(config, time_scale=1.0, telemetry=telemetry)
        await controller.start()
        await asyncio.sleep(0.25)

        assert await controller.pause() is True
        await asyncio.sleep(0.6)
        assert await controller.resume() is True

        # 0.15s of active time still owed on the first interval
        await asyncio.sleep(0.05)
        assert telemetry.samples == 0

        await asyncio.sleep(0.4)
        assert telemetry.samples >= 1

        await controller.stop()
        await controller.wait(10)

    @pytest.mark.asyncio
    async def test_stop_before_start(self, make_controller, quiet_run_config):
        controller = make_controller(quiet_run_config)

        await controller.stop()

        assert controller.status == RunStatus.CANCELLED
        assert controller.result.final_report is not None

    @pytest.mark.asyncio
    async def test_terminal_run_rejects_control(self, make_controller, quiet_run_config):
        controller = make_controller(quiet_run_config)
        await controller.start()
        await controller.wait(20)

        with pytest.raises(RunStateError):
            await controller.pause()
        with pytest.raises(RunStateError):
            await controller.resume()
        with pytest.raises(RunStateError):
            await controller.stop()
        with pytest.raises(RunStateError):
            await controller.start()

    @pytest.mark.parametrize(
        "current,target",
        [
            (RunStatus.COMPLETED, RunStatus.RUNNING),
            (RunStatus.IDLE, RunStatus.PAUSED),
            (RunStatus.PAUSED, RunStatus.COMPLETED),
            (RunStatus.CANCELLED, RunStatus.FAILED),
        ],
    )
    def test_illegal_transitions(self, current, target):
        with pytest.raises(RunStateError):
            check_transition(current, target)


class TestFailure:
    @pytest.mark.asyncio
    async def test_background_failure_fails_run(self, make_controller, quiet_run_config):
        controller = make_controller(quiet_run_config, telemetry=FailingTelemetry())

        await controller.start()
        result = await controller.wait(20)

        assert result.status == RunStatus.FAILED
        assert "telemetry" in result.failure_reason
        assert "TelemetryError" in result.failure_reason
        assert result.final_report is not None
        assert result.final_report.degraded
        assert controller.background_tasks == []
