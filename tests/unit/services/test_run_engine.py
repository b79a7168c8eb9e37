"""Unit tests for the Run Engine.

The engine is driven tick by tick here, without the controller's timers,
so a one hour run is simulated deterministically in a single test.
"""

from datetime import timedelta

import pytest

from src.soak.hal.collaborator import ValidationResult
from src.soak.hal.mock_collaborator import FlakyCollaborator
from src.soak.hal.resource_telemetry import ScriptedTelemetry
from src.soak.models.schemas import (
    AlertType,
    BusinessImpact,
    RunResult,
    RunStatus,
    ScheduleConfig,
    Severity,
)
from src.soak.services.run_engine import RunEngine, health_alert_severity

pytestmark = pytest.mark.unit


class UnreachableCollaborator:
    async def validate(self, payload):
        raise ConnectionError("service unreachable")

    async def execute(self, payload):
        raise ConnectionError("service unreachable")


class RejectingCollaborator:
    async def validate(self, payload):
        return ValidationResult(valid=False, error="nope", error_type="format", severity="low")

    async def execute(self, payload):
        raise AssertionError("execute must not be called after a rejection")


@pytest.fixture
def quiet_config(make_config):
    """Fixed load, no chaos or stress so only the collaborator moves the numbers."""
    return make_config(
        load_variation=False,
        chaos_engineering=False,
        stress_test_intervals=False,
        schedule=ScheduleConfig(baseline_warmup_minutes=0),
    )


@pytest.fixture
def calm_telemetry(make_snapshot):
    return ScriptedTelemetry([make_snapshot()])


def make_engine(config, collaborator, telemetry) -> RunEngine:
    return RunEngine(RunResult(config=config), collaborator, telemetry)


@pytest.fixture
def engine(quiet_config, calm_telemetry, reliable_collaborator) -> RunEngine:
    return make_engine(quiet_config, reliable_collaborator, calm_telemetry)


async def simulate(engine: RunEngine, t0, ticks: int = 3600) -> None:
    """One tick per run second: base-rate requests, telemetry every 2s, alerting every 10s."""
    rate = engine.config.base_request_rate
    for second in range(1, ticks + 1):
        now = t0 + timedelta(seconds=second)
        sent = 0
        while sent < rate:
            batch = engine.next_batch(rate - sent)
            engine.record_outcomes(await engine.execute_batch(batch), float(second))
            sent += len(batch)
        if second % 2 == 0:
            engine.telemetry_tick(float(second), now)
        if second % 10 == 0:
            engine.alerting_tick(now)


def error_alerts(engine: RunEngine):
    return [a for a in engine.metrics.alerts if a.type == AlertType.ERROR]


class TestHourLongSimulation:
    """base rate 10, concurrency 5, one hour, 2% error threshold."""

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_one_percent_failures_stay_below_threshold(
        self, quiet_config, calm_telemetry, t0
    ):
        collaborator = FlakyCollaborator(failure_rate=0.01, seed=7)
        engine = make_engine(quiet_config, collaborator, calm_telemetry)

        await simulate(engine, t0)

        m = engine.metrics
        assert m.total_requests == 36000
        assert m.successful_requests + m.failed_requests == m.total_requests
        assert m.error_rate == pytest.approx(m.failed_requests / m.total_requests * 100)
        assert m.error_rate <= 1.5
        assert error_alerts(engine) == []
        assert len(m.hourly_breakdown) == 1

    @pytest.mark.asyncio
    @pytest.mark.slow
    async def test_five_percent_failures_raise_error_alert(self, quiet_config, calm_telemetry, t0):
        collaborator = FlakyCollaborator(failure_rate=0.05, seed=7)
        engine = make_engine(quiet_config, collaborator, calm_telemetry)

        await simulate(engine, t0)

        alerts = error_alerts(engine)
        assert alerts
        assert all(a.severity.rank >= Severity.MEDIUM.rank for a in alerts)
        assert engine.metrics.effective_error_rate > 2.0


class TestForeground:
    def test_target_rate_records_current_target(self, engine, t0):
        assert engine.target_rate(0.0, t0) == 10
        assert engine.metrics.current_target_rate == 10

    def test_batch_bounded_by_concurrency(self, engine, quiet_config):
        assert len(engine.next_batch(100)) == quiet_config.concurrency
        assert len(engine.next_batch(2)) == 2

    @pytest.mark.asyncio
    async def test_rejections_are_expected_for_adversarial_only(self, quiet_config, calm_telemetry):
        engine = make_engine(quiet_config, RejectingCollaborator(), calm_telemetry)

        batch = engine.sequence.take(len(engine.sequence))
        engine.record_outcomes(await engine.execute_batch(batch), 10.0)

        m = engine.metrics
        assert m.failed_requests == 100
        assert m.expected_rejections == 65
        # Rejected valid requests are genuine errors
        assert m.effective_error_rate == pytest.approx(35.0)


class TestBackgroundTicks:
    def test_telemetry_tick_scores_and_baselines(
        self, quiet_config, reliable_collaborator, make_snapshot, t0
    ):
        telemetry = ScriptedTelemetry(
            [make_snapshot(memory_usage_mb=100.0), make_snapshot(memory_usage_mb=400.0)]
        )
        engine = make_engine(quiet_config, reliable_collaborator, telemetry)

        engine.telemetry_tick(2.0, t0)
        baseline = engine.metrics.performance_baseline.model_copy()
        assert baseline.established
        assert baseline.memory_usage_mb == 100.0

        engine.telemetry_tick(4.0, t0 + timedelta(seconds=2))
        assert engine.metrics.memory_usage_mb == 400.0
        assert engine.metrics.performance_baseline == baseline
        assert engine.metrics.degradation_analysis is not None
        assert len(engine.metrics.performance_trends) == 2

    def test_leak_detection_toggle(self, make_config, calm_telemetry, reliable_collaborator, t0):
        config = make_config(memory_leak_detection=False)
        engine = make_engine(config, reliable_collaborator, calm_telemetry)
        assert engine.leak_detection_tick(t0) is None

    def test_business_toggle(self, make_config, calm_telemetry, reliable_collaborator):
        enabled = make_engine(make_config(), reliable_collaborator, calm_telemetry)
        disabled = make_engine(
            make_config(business_metrics_tracking=False), reliable_collaborator, calm_telemetry
        )
        assert enabled.business_tick() is not None
        assert disabled.business_tick() is None

    @pytest.mark.asyncio
    async def test_probe_collaborator(self, engine, quiet_config, calm_telemetry):
        assert await engine.probe_collaborator()
        assert not await make_engine(
            quiet_config, UnreachableCollaborator(), calm_telemetry
        ).probe_collaborator()

    def test_health_check_failure_raises_alert(self, engine, t0):
        engine.telemetry_tick(2.0, t0)

        report = engine.record_health_check(False, t0)

        assert report.failed == ["collaborator"]
        assert engine.metrics.last_health_check == report
        [alert] = engine.metrics.alerts
        assert alert.type == AlertType.HEALTH
        assert alert.severity == Severity.MEDIUM
        assert alert.affected_systems == ["health-check", "collaborator"]

    def test_health_check_pass_is_silent(self, engine, t0):
        engine.telemetry_tick(2.0, t0)

        assert engine.record_health_check(True, t0).failed == []
        assert engine.metrics.alerts == []

    @pytest.mark.parametrize(
        "failed,severity", [(1, Severity.MEDIUM), (2, Severity.HIGH), (4, Severity.CRITICAL)]
    )
    def test_health_alert_severity(self, failed, severity):
        assert health_alert_severity(failed) == severity


class TestLifecycle:
    def test_start_alert_is_auto_resolved(self, engine, t0):
        alert = engine.record_start_alert(t0)

        assert alert.resolved and alert.auto_resolved
        assert alert.business_impact == BusinessImpact.NONE
        assert engine.metrics.alerts == [alert]

    @pytest.mark.asyncio
    async def test_close_and_report(self, engine, t0):
        engine.record_outcomes(await engine.execute_batch(engine.next_batch(5)), 1.0)

        engine.close(7200.0)
        engine.result.status = RunStatus.COMPLETED
        report = engine.build_report(t0)

        assert engine.metrics.elapsed_seconds == 7200.0
        assert len(engine.metrics.hourly_breakdown) == 2
        assert report.generated_at == t0
        assert "5 requests" in report.executive_summary
