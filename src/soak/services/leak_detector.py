"""
Memory-Trend Detector.

Compares the mean memory usage of the older and newer halves of a recent
window of trend samples and classifies the growth.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

import numpy as np

from src.soak.models.schemas import (
    Alert,
    AlertType,
    BusinessImpact,
    MemoryLeakRecord,
    PerformanceSample,
    RunMetrics,
    Severity,
)
from src.soak.services.alerting_engine import make_alert
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

TREND_THRESHOLD = 5.0
# growth-rate breakpoint -> leak severity, checked in order
SEVERITY_BREAKPOINTS = ((15.0, 4), (10.0, 3), (5.0, 2), (2.0, 1))

LEAK_ALERT_SEVERITY = {
    1: Severity.LOW,
    2: Severity.MEDIUM,
    3: Severity.HIGH,
    4: Severity.CRITICAL,
}


def growth_rate(memory_series: Sequence[float]) -> float:
    """Percent change between the mean of the second half and the first half."""
    values = np.asarray(memory_series, dtype=float)
    half = len(values) // 2
    first, second = values[:half], values[half:]
    first_avg = float(np.mean(first))
    if first_avg <= 0:
        return 0.0
    return (float(np.mean(second)) - first_avg) / first_avg * 100.0


def classify_trend(rate: float) -> str:
    if rate > TREND_THRESHOLD:
        return "increasing"
    if rate < -TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def leak_severity(rate: float) -> int:
    for breakpoint, level in SEVERITY_BREAKPOINTS:
        if rate > breakpoint:
            return level
    return 0


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def analyze_memory_series(
    memory_series: Sequence[float], timestamp: datetime
) -> MemoryLeakRecord:
    """Classify one window of memory readings (at least two values)."""
    if len(memory_series) < 2:
        raise ValueError("At least two memory samples are required")

    rate = growth_rate(memory_series)
    positive_growth = max(0.0, rate)
    return MemoryLeakRecord(
        timestamp=timestamp,
        memory_usage_mb=float(memory_series[-1]),
        growth_rate=rate,
        trend=classify_trend(rate),
        leak_severity=leak_severity(rate),
        gc_effectiveness=_clamp(100.0 - positive_growth * 3.0),
        heap_fragmentation=_clamp(positive_growth * 2.0),
        object_retention=_clamp(positive_growth * 1.5),
        samples_analyzed=len(memory_series),
    )


class MemoryTrendDetector:
    """Windowed leak detection over the run's performance-trend buffer."""

    def __init__(self, window_minutes: float = 45.0, min_samples: int = 10):
        self.window = timedelta(minutes=window_minutes)
        self.min_samples = min_samples

    def window_samples(
        self, trends: Sequence[PerformanceSample], now: datetime
    ) -> list[PerformanceSample]:
        cutoff = now - self.window
        return [s for s in trends if s.timestamp >= cutoff]

    def detect(
        self, metrics: RunMetrics, now: datetime
    ) -> tuple[MemoryLeakRecord | None, Alert | None]:
        """Analyze the recent window, log the result and raise an alert on a leak."""
        samples = self.window_samples(metrics.performance_trends, now)
        if len(samples) < self.min_samples:
            logger.debug(
                f"Leak detection skipped: {len(samples)} samples in window, "
                f"need {self.min_samples}"
            )
            return None, None

        record = analyze_memory_series([s.memory_usage_mb for s in samples], now)
        metrics.memory_leak_detection.append(record)

        if record.leak_severity == 0:
            return record, None

        severity = LEAK_ALERT_SEVERITY[record.leak_severity]
        if record.leak_severity >= 3:
            impact = BusinessImpact.HIGH
        elif record.leak_severity == 2:
            impact = BusinessImpact.MEDIUM
        else:
            impact = BusinessImpact.LOW

        alert = make_alert(
            AlertType.MEMORY,
            severity,
            f"Memory leak suspected: {record.growth_rate:.1f}% growth over "
            f"{len(samples)} samples (severity {record.leak_severity})",
            ["memory", "gc", "heap"],
            now,
            source="leak_detector",
            business_impact=impact,
        )
        alert.escalated = record.leak_severity >= 3
        metrics.alerts.append(alert)
        logger.warning(alert.message)
        return record, alert
