"""Unit tests for the Metrics Aggregator."""

import pytest

from src.soak.models.schemas import RunMetrics
from src.soak.services.metrics_aggregator import MetricsAggregator, percentile

pytestmark = pytest.mark.unit


class TestPercentile:
    def test_empty_sample_is_zero(self):
        assert percentile([], 0.95) == 0.0

    def test_order_statistic_index(self):
        samples = [float(i) for i in range(1, 101)]
        assert percentile(samples, 0.95) == 96.0
        assert percentile(samples, 0.99) == 100.0
        assert percentile(samples, 0.999) == 100.0

    def test_single_sample(self):
        assert percentile([42.0], 0.999) == 42.0


class TestRecordOutcomes:
    """Counter reconciliation and derived rates."""

    def test_counters_reconcile(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics)
        aggregator.record(make_outcome(), 1.0)
        aggregator.record(make_outcome(success=False, error_type="server"), 2.0)
        aggregator.record(make_outcome(success=False), 3.0)

        assert metrics.total_requests == 3
        assert metrics.successful_requests + metrics.failed_requests == metrics.total_requests
        assert metrics.errors_caught == 1
        assert metrics.errors_not_caught == 1
        assert metrics.error_rate == pytest.approx(2 / 3 * 100)

    def test_expected_rejections_excluded_from_effective_rate(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics)
        aggregator.record_batch(
            [
                make_outcome(),
                make_outcome(success=False, error_type="range", expected_rejection=True),
                make_outcome(success=False, error_type="server"),
                make_outcome(),
            ],
            elapsed_seconds=2.0,
        )

        assert metrics.error_rate == 50.0
        assert metrics.effective_error_rate == 25.0
        assert metrics.expected_rejections == 1
        assert metrics.requests_per_second == 2.0

    def test_security_and_timeout_counters(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics)
        aggregator.record(
            make_outcome(
                success=False, error_type="security", expected_rejection=True, category="security"
            ),
            1.0,
        )
        aggregator.record(make_outcome(success=False, category="system", timed_out=True), 1.0)
        aggregator.record(make_outcome(validation_bypass=True), 1.0)

        assert metrics.security_violations == 1
        assert metrics.timeouts == 1
        assert metrics.validation_bypasses == 1

    def test_response_time_statistics(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics)
        for rt in (100.0, 300.0, 200.0):
            aggregator.record(make_outcome(response_time_ms=rt), 1.0)

        assert metrics.average_response_time == pytest.approx(200.0)
        assert metrics.min_response_time == 100.0
        assert metrics.max_response_time == 300.0
        assert metrics.p95_response_time == 300.0

    def test_sample_window_evicts_oldest(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics, sample_window=100)
        for i in range(150):
            outcome = make_outcome(response_time_ms=float(i))
            aggregator.record(outcome, 1.0, refresh_percentiles=False)
        aggregator.refresh_percentiles()

        assert aggregator.sample_count == 100
        assert min(aggregator.recent_samples()) == 50.0
        # Running max covers the whole run, not only the window
        assert metrics.max_response_time == 149.0

    def test_error_trends_bounded(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics, error_trend_buffer_size=10)
        for _ in range(25):
            aggregator.record(make_outcome(success=False, error_type="server"), 1.0)

        assert len(metrics.error_trends) == 10
        assert metrics.error_trends[-1].error_type == "server"

    def test_unclassified_error_trend(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics)
        aggregator.record(make_outcome(success=False), 1.0)
        assert metrics.error_trends[0].error_type == "unclassified"


class TestResources:
    def test_record_resources_appends_trend_sample(self, metrics, make_snapshot, t0):
        aggregator = MetricsAggregator(metrics, trend_buffer_size=10)
        sample = aggregator.record_resources(make_snapshot(memory_usage_mb=321.0), 5.0, t0)

        assert metrics.memory_usage_mb == 321.0
        assert metrics.performance_trends == [sample]
        assert sample.elapsed_seconds == 5.0

    def test_trend_buffer_bounded(self, metrics, make_snapshot, t0):
        aggregator = MetricsAggregator(metrics, trend_buffer_size=10)
        for i in range(15):
            aggregator.record_resources(make_snapshot(memory_usage_mb=float(i)), float(i), t0)

        assert len(metrics.performance_trends) == 10
        assert metrics.performance_trends[0].memory_usage_mb == 5.0


class TestHourlyBreakdown:
    def test_closes_each_elapsed_hour_once(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics)
        aggregator.record(make_outcome(response_time_ms=100.0), 10.0)
        aggregator.record(make_outcome(success=False, error_type="server"), 20.0)

        aggregator.record(make_outcome(), 3700.0)
        assert len(metrics.hourly_breakdown) == 1
        first = metrics.hourly_breakdown[0]
        assert first.hour == 0
        assert first.requests == 2
        assert first.errors == 1
        assert first.error_rate == 50.0

        written = aggregator.roll_hours(3 * 3600.0 + 1)
        assert [r.hour for r in written] == [1, 2]
        assert written[0].requests == 1
        assert written[1].requests == 0
        assert written[1].avg_response_time == 0.0

    def test_expected_rejections_not_hourly_errors(self, metrics, make_outcome):
        aggregator = MetricsAggregator(metrics)
        aggregator.record(
            make_outcome(success=False, error_type="range", expected_rejection=True), 10.0
        )
        record = aggregator.roll_hours(3600.0)[0]
        assert record.errors == 0

    def test_resumes_from_existing_breakdown(self, make_outcome):
        metrics = RunMetrics()
        MetricsAggregator(metrics).roll_hours(2 * 3600.0)
        assert len(metrics.hourly_breakdown) == 2

        resumed = MetricsAggregator(metrics)
        assert resumed.roll_hours(2 * 3600.0) == []
