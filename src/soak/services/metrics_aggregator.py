"""
Metrics Aggregator.

Folds request outcomes and resource samples into ``RunMetrics``. Counters
only ever increase; the percentile window and the trend buffers are
bounded and evict oldest entries first.
"""

import math
from collections import deque
from datetime import datetime

from src.soak.models.schemas import (
    ErrorTrendEntry,
    HourlyRecord,
    PerformanceSample,
    RequestOutcome,
    ResourceSnapshot,
    RunMetrics,
    Severity,
)
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

PERCENTILES = (0.95, 0.99, 0.999)


def percentile(sorted_samples: list[float], q: float) -> float:
    """Order statistic at ``floor(n*q)``, clamped to the last element."""
    if not sorted_samples:
        return 0.0
    index = min(len(sorted_samples) - 1, math.floor(len(sorted_samples) * q))
    return sorted_samples[index]


class MetricsAggregator:
    """Single consumer of request outcomes for one run."""

    def __init__(
        self,
        metrics: RunMetrics,
        sample_window: int = 5000,
        trend_buffer_size: int = 3000,
        error_trend_buffer_size: int = 1000,
    ):
        self.metrics = metrics
        self.trend_buffer_size = trend_buffer_size
        self.error_trend_buffer_size = error_trend_buffer_size
        self._samples: deque[float] = deque(maxlen=sample_window)

        self._next_hour = len(metrics.hourly_breakdown)
        self._hour_requests = 0
        self._hour_errors = 0
        self._hour_response_sum = 0.0
        self._hour_alert_mark = len(metrics.alerts)

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def sample_capacity(self) -> int:
        return self._samples.maxlen or 0

    def recent_samples(self) -> list[float]:
        return list(self._samples)

    def record(
        self, outcome: RequestOutcome, elapsed_seconds: float, refresh_percentiles: bool = True
    ) -> None:
        """Fold one outcome into the aggregate."""
        self.roll_hours(elapsed_seconds)
        m = self.metrics

        m.total_requests += 1
        if outcome.success:
            m.successful_requests += 1
        else:
            m.failed_requests += 1
            if outcome.error_type:
                m.errors_caught += 1
            else:
                m.errors_not_caught += 1
            if outcome.expected_rejection:
                m.expected_rejections += 1
            if outcome.category == "security":
                m.security_violations += 1
            if outcome.timed_out:
                m.timeouts += 1
            self._log_error_trend(outcome)

        if outcome.validation_bypass:
            m.validation_bypasses += 1

        rt = outcome.response_time_ms
        m.average_response_time += (rt - m.average_response_time) / m.total_requests
        m.min_response_time = rt if m.min_response_time is None else min(m.min_response_time, rt)
        m.max_response_time = max(m.max_response_time, rt)
        self._samples.append(rt)

        m.error_rate = m.failed_requests / m.total_requests * 100.0
        unexpected = m.failed_requests - m.expected_rejections
        m.effective_error_rate = unexpected / m.total_requests * 100.0
        if elapsed_seconds > 0:
            m.requests_per_second = m.total_requests / elapsed_seconds
        m.elapsed_seconds = max(m.elapsed_seconds, elapsed_seconds)

        self._hour_requests += 1
        self._hour_response_sum += rt
        if not outcome.success and not outcome.expected_rejection:
            self._hour_errors += 1

        if refresh_percentiles:
            self.refresh_percentiles()

    def record_batch(self, outcomes: list[RequestOutcome], elapsed_seconds: float) -> None:
        for outcome in outcomes:
            self.record(outcome, elapsed_seconds, refresh_percentiles=False)
        self.refresh_percentiles()

    def refresh_percentiles(self) -> None:
        ordered = sorted(self._samples)
        m = self.metrics
        m.p95_response_time, m.p99_response_time, m.p999_response_time = (
            percentile(ordered, q) for q in PERCENTILES
        )

    def record_resources(
        self, snapshot: ResourceSnapshot, elapsed_seconds: float, now: datetime
    ) -> PerformanceSample:
        """Update resource gauges and append a trend sample."""
        m = self.metrics
        m.memory_usage_mb = snapshot.memory_usage_mb
        m.cpu_usage_percent = snapshot.cpu_usage_percent
        m.network_latency_ms = snapshot.network_latency_ms
        m.disk_usage_percent = snapshot.disk_usage_percent
        m.cache_hit_rate = snapshot.cache_hit_rate
        m.thread_count = snapshot.thread_count
        m.gc_collections = snapshot.gc_collections
        m.elapsed_seconds = max(m.elapsed_seconds, elapsed_seconds)
        if elapsed_seconds > 0:
            m.requests_per_second = m.total_requests / elapsed_seconds

        sample = PerformanceSample(
            timestamp=now,
            elapsed_seconds=elapsed_seconds,
            response_time=m.average_response_time,
            memory_usage_mb=snapshot.memory_usage_mb,
            cpu_usage_percent=snapshot.cpu_usage_percent,
            network_latency_ms=snapshot.network_latency_ms,
            disk_usage_percent=snapshot.disk_usage_percent,
            cache_hit_rate=snapshot.cache_hit_rate,
            throughput=m.requests_per_second,
            error_rate=m.effective_error_rate,
            stability_score=m.stability_score,
        )
        m.performance_trends.append(sample)
        overflow = len(m.performance_trends) - self.trend_buffer_size
        if overflow > 0:
            del m.performance_trends[:overflow]
        return sample

    def roll_hours(self, elapsed_seconds: float) -> list[HourlyRecord]:
        """Write one record for every elapsed hour not yet summarised."""
        current_hour = math.floor(elapsed_seconds / 3600.0)
        written = []
        while self._next_hour < current_hour:
            written.append(self._close_hour(self._next_hour))
            self._next_hour += 1
        return written

    def _close_hour(self, hour: int) -> HourlyRecord:
        m = self.metrics
        requests = self._hour_requests
        record = HourlyRecord(
            hour=hour,
            requests=requests,
            errors=self._hour_errors,
            error_rate=(self._hour_errors / requests * 100.0) if requests else 0.0,
            avg_response_time=(self._hour_response_sum / requests) if requests else 0.0,
            memory_usage_mb=m.memory_usage_mb,
            cpu_usage_percent=m.cpu_usage_percent,
            stability_score=m.stability_score,
            alerts_raised=len(m.alerts) - self._hour_alert_mark,
        )
        m.hourly_breakdown.append(record)
        logger.info(
            f"Hour {hour} closed: {requests} requests, "
            f"{record.error_rate:.2f}% errors, {record.avg_response_time:.1f}ms avg"
        )

        self._hour_requests = 0
        self._hour_errors = 0
        self._hour_response_sum = 0.0
        self._hour_alert_mark = len(m.alerts)
        return record

    def _log_error_trend(self, outcome: RequestOutcome) -> None:
        trends = self.metrics.error_trends
        trends.append(
            ErrorTrendEntry(
                timestamp=outcome.timestamp,
                error_type=outcome.error_type or "unclassified",
                message=outcome.error_message,
                severity=outcome.severity or Severity.MEDIUM,
                category=outcome.category,
            )
        )
        overflow = len(trends) - self.error_trend_buffer_size
        if overflow > 0:
            del trends[:overflow]
