"""Unit tests for the Stability & Degradation Analyzer."""

from datetime import timedelta

import pytest

from src.soak.models.schemas import (
    AlertType,
    CircuitState,
    HealthStatus,
    ScheduleConfig,
    Severity,
)
from src.soak.services.alerting_engine import make_alert
from src.soak.services.stability_analyzer import (
    StabilityAnalyzer,
    circuit_breaker_state,
    clamp,
    health_check_status,
    health_score,
    stability_factors,
    stability_score,
)

pytestmark = pytest.mark.unit


class TestScores:
    def test_clamp(self):
        assert clamp(-5) == 0.0
        assert clamp(150) == 100.0
        assert clamp(42.5) == 42.5

    def test_calm_snapshot_scores_high(self, run_config, make_snapshot):
        score = stability_score(make_snapshot(), 0.0, 0.1, run_config)
        assert 90.0 < score <= 100.0

    def test_factors_are_normalised(self, run_config, make_snapshot):
        factors = stability_factors(
            make_snapshot(
                memory_usage_mb=10_000, cpu_usage_percent=100, network_latency_ms=10_000
            ),
            error_rate=50.0,
            elapsed_hours=0.5,
            config=run_config,
        )
        for value in (factors.memory, factors.cpu, factors.error, factors.network):
            assert 0.0 <= value <= 100.0
        assert factors.error == 0.0

    def test_endurance_only_for_long_runs(self, make_config, make_snapshot):
        short = stability_factors(make_snapshot(), 0.0, 0.5, make_config(duration_hours=1))
        long = stability_factors(make_snapshot(), 0.0, 36.0, make_config(duration_hours=72))

        assert short.endurance is None
        assert long.endurance == pytest.approx(97.5)

    def test_higher_error_rate_lowers_stability(self, run_config, make_snapshot):
        calm = stability_score(make_snapshot(), 0.0, 0.5, run_config)
        noisy = stability_score(make_snapshot(), 5.0, 0.5, run_config)
        assert noisy < calm

    def test_health_score(self):
        assert health_score(100.0, 0.0, 100.0) == 100.0
        assert health_score(50.0, 5.0, 50.0) == pytest.approx(20.0 + 15.0 + 15.0)

    @pytest.mark.parametrize(
        "error_rate,expected",
        [
            (0.0, CircuitState.CLOSED),
            (2.0, CircuitState.CLOSED),
            (3.0, CircuitState.HALF_OPEN),
            (5.0, CircuitState.HALF_OPEN),
            (6.0, CircuitState.OPEN),
        ],
    )
    def test_circuit_breaker_state(self, error_rate, expected):
        assert circuit_breaker_state(error_rate) == expected

    @pytest.mark.parametrize(
        "stability,expected",
        [
            (95.0, HealthStatus.HEALTHY),
            (90.0, HealthStatus.DEGRADED),
            (75.0, HealthStatus.DEGRADED),
            (70.0, HealthStatus.UNHEALTHY),
        ],
    )
    def test_health_check_status(self, stability, expected):
        assert health_check_status(stability) == expected


class TestUpdateScores:
    def test_update_scores_writes_metrics(self, run_config, metrics, make_snapshot):
        metrics.effective_error_rate = 6.0
        analyzer = StabilityAnalyzer(run_config)

        score = analyzer.update_scores(metrics, make_snapshot(), 0.5)

        assert metrics.stability_score == score
        assert metrics.circuit_breaker_state == CircuitState.OPEN
        assert 0.0 <= metrics.health_score <= 100.0


class TestBaseline:
    """The baseline is captured once, after warm-up, and never changes."""

    def _analyzer(self, make_config, **overrides):
        config = make_config(
            schedule=ScheduleConfig(baseline_warmup_minutes=60), **overrides
        )
        return StabilityAnalyzer(config)

    def test_not_before_warmup(self, make_config, metrics, t0):
        analyzer = self._analyzer(make_config)
        assert analyzer.maybe_establish_baseline(metrics, 0.5, t0) is False
        assert metrics.performance_baseline.established is False

    def test_captured_once(self, make_config, metrics, t0):
        analyzer = self._analyzer(make_config)
        metrics.average_response_time = 120.0
        metrics.memory_usage_mb = 200.0
        metrics.requests_per_second = 10.0

        assert analyzer.maybe_establish_baseline(metrics, 1.0, t0) is True
        baseline = metrics.performance_baseline.model_copy()

        metrics.average_response_time = 500.0
        metrics.memory_usage_mb = 900.0
        assert analyzer.maybe_establish_baseline(metrics, 2.0, t0 + timedelta(hours=1)) is False
        assert metrics.performance_baseline == baseline
        assert metrics.performance_baseline.response_time == 120.0

    def test_disabled(self, make_config, metrics, t0):
        analyzer = self._analyzer(make_config, performance_baselining=False)
        assert analyzer.maybe_establish_baseline(metrics, 5.0, t0) is False


class TestDegradation:
    def test_none_without_baseline(self, run_config, metrics):
        assert StabilityAnalyzer(run_config).compute_degradation(metrics, 2.0) is None
        assert metrics.degradation_analysis is None

    def test_against_baseline(self, make_config, metrics, t0):
        schedule = ScheduleConfig(baseline_warmup_minutes=60)
        analyzer = StabilityAnalyzer(make_config(schedule=schedule))
        metrics.average_response_time = 100.0
        metrics.memory_usage_mb = 100.0
        metrics.cpu_usage_percent = 20.0
        metrics.requests_per_second = 10.0
        analyzer.maybe_establish_baseline(metrics, 1.0, t0)

        metrics.average_response_time = 150.0
        metrics.memory_usage_mb = 110.0
        metrics.cpu_usage_percent = 30.0
        metrics.requests_per_second = 8.0
        metrics.effective_error_rate = 1.0
        analysis = analyzer.compute_degradation(metrics, 2.0)

        assert analysis is metrics.degradation_analysis
        assert analysis.response_time_degradation == pytest.approx(50.0)
        assert analysis.memory_growth_rate == pytest.approx(240.0)
        assert analysis.cpu_trend == pytest.approx(50.0)
        assert analysis.throughput_decline == pytest.approx(20.0)
        assert analysis.reliability_index == pytest.approx(80.0)
        assert analysis.mtbf_hours == 2.0

    def test_improvement_is_not_negative_degradation(self, make_config, metrics, t0):
        schedule = ScheduleConfig(baseline_warmup_minutes=0)
        analyzer = StabilityAnalyzer(make_config(schedule=schedule))
        metrics.average_response_time = 100.0
        metrics.requests_per_second = 10.0
        analyzer.maybe_establish_baseline(metrics, 0.0, t0)

        metrics.average_response_time = 50.0
        metrics.requests_per_second = 20.0
        analysis = analyzer.compute_degradation(metrics, 1.0)

        assert analysis.response_time_degradation == 0.0
        assert analysis.throughput_decline == 0.0

    def test_mtbf_and_mttr_from_alerts(self, make_config, metrics, t0):
        schedule = ScheduleConfig(baseline_warmup_minutes=0)
        analyzer = StabilityAnalyzer(make_config(schedule=schedule))
        analyzer.maybe_establish_baseline(metrics, 0.0, t0)

        for severity in (Severity.HIGH, Severity.CRITICAL):
            alert = make_alert(AlertType.ERROR, severity, "boom", ["app"], t0, source="test")
            alert.resolve(t0 + timedelta(minutes=10))
            metrics.alerts.append(alert)

        notice = make_alert(AlertType.PERFORMANCE, Severity.LOW, "started", [], t0, source="test")
        notice.resolve(t0, auto=True)
        metrics.alerts.append(notice)

        analysis = analyzer.compute_degradation(metrics, 4.0)
        assert analysis.mtbf_hours == 2.0
        assert analysis.mttr_minutes == pytest.approx(10.0)
        assert analysis.resilience_rating == 90.0
