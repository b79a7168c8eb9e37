"""Property-based tests for metric aggregation, scoring and rate control."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.soak.models.schemas import RunMetrics
from src.soak.services.leak_detector import analyze_memory_series
from src.soak.services.metrics_aggregator import MetricsAggregator, percentile
from src.soak.services.rate_controller import BUSINESS_HOURS_BOOST, target_rate_at
from src.soak.services.stability_analyzer import health_score, stability_score

from strategies import (
    EPOCH,
    percentages,
    request_outcomes,
    resource_snapshots,
    response_times,
    run_configs,
    wall_clock,
)

pytestmark = pytest.mark.property


class TestPercentiles:
    @given(st.lists(response_times, min_size=1, max_size=500))
    def test_ordered_and_drawn_from_sample(self, samples):
        ordered = sorted(samples)
        p95, p99, p999 = (percentile(ordered, q) for q in (0.95, 0.99, 0.999))

        assert ordered[0] <= p95 <= p99 <= p999 <= ordered[-1]
        assert {p95, p99, p999} <= set(samples)

    def test_empty(self):
        assert percentile([], 0.95) == 0.0


class TestAggregation:
    @given(st.lists(request_outcomes(), min_size=1, max_size=200), st.integers(10, 1000))
    def test_counters_reconcile(self, outcomes, window):
        metrics = RunMetrics()
        aggregator = MetricsAggregator(metrics, sample_window=window)

        aggregator.record_batch(outcomes, 60.0)

        assert metrics.total_requests == len(outcomes)
        assert metrics.successful_requests + metrics.failed_requests == metrics.total_requests
        assert metrics.errors_caught + metrics.errors_not_caught == metrics.failed_requests
        assert metrics.expected_rejections <= metrics.failed_requests
        assert 0.0 <= metrics.effective_error_rate <= metrics.error_rate <= 100.0
        assert aggregator.sample_count == min(len(outcomes), window)
        assert metrics.p95_response_time <= metrics.p99_response_time <= metrics.p999_response_time
        assert metrics.p999_response_time <= metrics.max_response_time
        assert metrics.min_response_time <= metrics.average_response_time * (1 + 1e-9) + 1e-9

    @given(st.lists(request_outcomes(), min_size=2, max_size=100))
    def test_counters_never_decrease(self, outcomes):
        metrics = RunMetrics()
        aggregator = MetricsAggregator(metrics)
        previous = (0, 0, 0)

        for i, outcome in enumerate(outcomes, start=1):
            aggregator.record(outcome, float(i))
            current = (metrics.total_requests, metrics.failed_requests, metrics.validation_bypasses)
            assert all(c >= p for c, p in zip(current, previous))
            previous = current


class TestScores:
    @given(resource_snapshots(), percentages, st.floats(0.0, 240.0), run_configs())
    def test_scores_bounded(self, snapshot, error_rate, elapsed_hours, config):
        stability = stability_score(snapshot, error_rate, elapsed_hours, config)
        health = health_score(stability, error_rate, snapshot.cache_hit_rate)

        assert 0.0 <= stability <= 100.0
        assert 0.0 <= health <= 100.0


class TestRateControl:
    @given(run_configs(), st.floats(0.0, 300.0), wall_clock)
    def test_deterministic_and_positive(self, config, elapsed_hours, now):
        rate = target_rate_at(config, elapsed_hours, now)

        assert rate == target_rate_at(config, elapsed_hours, now)
        assert 1 <= rate <= config.base_request_rate * BUSINESS_HOURS_BOOST

    @given(run_configs(), st.floats(0.0, 300.0), wall_clock, st.floats(1.0, 20.0))
    def test_stress_never_lowers_rate(self, config, elapsed_hours, now, multiplier):
        assert target_rate_at(config, elapsed_hours, now, multiplier) >= target_rate_at(
            config, elapsed_hours, now
        )


class TestLeakAnalysis:
    @given(st.lists(st.floats(1.0, 8192.0), min_size=2, max_size=200))
    def test_record_fields_bounded(self, series):
        record = analyze_memory_series(series, EPOCH)

        assert 0 <= record.leak_severity <= 4
        assert record.trend in {"increasing", "decreasing", "stable"}
        assert 0.0 <= record.gc_effectiveness <= 100.0
        assert record.samples_analyzed == len(series)
