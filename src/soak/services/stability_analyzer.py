"""
Stability & Degradation Analyzer.

Composite stability and health scores, the one-time performance baseline
and the degradation figures derived from it.
"""

from dataclasses import dataclass
from datetime import datetime

from src.soak.models.schemas import (
    CircuitState,
    DegradationAnalysis,
    HealthStatus,
    ResourceSnapshot,
    RunConfig,
    RunMetrics,
    Severity,
)
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

LONG_RUN_HOURS = 24.0

STABILITY_WEIGHTS = {
    "memory": 0.20,
    "cpu": 0.15,
    "error": 0.25,
    "network": 0.10,
    "disk": 0.10,
    "cache": 0.10,
    "endurance": 0.10,
}

CIRCUIT_OPEN_ERROR_RATE = 5.0
CIRCUIT_HALF_OPEN_ERROR_RATE = 2.0
HEALTHY_STABILITY = 90.0
DEGRADED_STABILITY = 70.0


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


@dataclass
class StabilityFactors:
    """Normalised sub-scores, each in [0, 100]."""

    memory: float
    cpu: float
    error: float
    network: float
    disk: float
    cache: float
    endurance: float | None = None

    def weighted(self) -> float:
        parts = {
            "memory": self.memory,
            "cpu": self.cpu,
            "error": self.error,
            "network": self.network,
            "disk": self.disk,
            "cache": self.cache,
        }
        if self.endurance is not None:
            parts["endurance"] = self.endurance
        total_weight = sum(STABILITY_WEIGHTS[name] for name in parts)
        score = sum(STABILITY_WEIGHTS[name] * value for name, value in parts.items())
        return clamp(score / total_weight)


def stability_factors(
    snapshot: ResourceSnapshot,
    error_rate: float,
    elapsed_hours: float,
    config: RunConfig,
) -> StabilityFactors:
    endurance = None
    if config.duration_hours >= LONG_RUN_HOURS:
        endurance = clamp(100.0 - elapsed_hours / config.duration_hours * 5.0)

    return StabilityFactors(
        memory=clamp(100.0 - snapshot.memory_usage_mb / config.memory_threshold_mb * 30.0),
        cpu=clamp(100.0 - snapshot.cpu_usage_percent * 0.2),
        error=clamp(100.0 - error_rate * 12.0),
        network=clamp(100.0 - snapshot.network_latency_ms / 500.0 * 15.0),
        disk=clamp(100.0 - snapshot.disk_usage_percent * 0.1),
        cache=clamp(snapshot.cache_hit_rate),
        endurance=endurance,
    )


def stability_score(
    snapshot: ResourceSnapshot, error_rate: float, elapsed_hours: float, config: RunConfig
) -> float:
    return stability_factors(snapshot, error_rate, elapsed_hours, config).weighted()


def health_score(stability: float, error_rate: float, cache_hit_rate: float) -> float:
    return clamp(stability * 0.4 + (100.0 - error_rate * 10.0) * 0.3 + cache_hit_rate * 0.3)


def circuit_breaker_state(error_rate: float) -> CircuitState:
    if error_rate > CIRCUIT_OPEN_ERROR_RATE:
        return CircuitState.OPEN
    if error_rate > CIRCUIT_HALF_OPEN_ERROR_RATE:
        return CircuitState.HALF_OPEN
    return CircuitState.CLOSED


def health_check_status(stability: float) -> HealthStatus:
    if stability > HEALTHY_STABILITY:
        return HealthStatus.HEALTHY
    if stability > DEGRADED_STABILITY:
        return HealthStatus.DEGRADED
    return HealthStatus.UNHEALTHY


def _pct_change(current: float, base: float) -> float:
    if base <= 0:
        return 0.0
    return (current - base) / base * 100.0


class StabilityAnalyzer:
    """Per-run analyzer; owns baseline capture and degradation math."""

    def __init__(self, config: RunConfig):
        self.config = config

    def update_scores(
        self, metrics: RunMetrics, snapshot: ResourceSnapshot, elapsed_hours: float
    ) -> float:
        """Recompute stability, health, circuit and health-check state."""
        error_rate = metrics.effective_error_rate
        metrics.stability_score = stability_score(snapshot, error_rate, elapsed_hours, self.config)
        metrics.health_score = health_score(
            metrics.stability_score, error_rate, snapshot.cache_hit_rate
        )
        metrics.circuit_breaker_state = circuit_breaker_state(error_rate)
        metrics.health_check_status = health_check_status(metrics.stability_score)
        return metrics.stability_score

    def maybe_establish_baseline(
        self, metrics: RunMetrics, elapsed_hours: float, now: datetime
    ) -> bool:
        """Capture the baseline once, after the warm-up period. Returns True when captured."""
        baseline = metrics.performance_baseline
        if baseline.established or not self.config.performance_baselining:
            return False
        if elapsed_hours * 60.0 < self.config.schedule.baseline_warmup_minutes:
            return False

        baseline.response_time = metrics.average_response_time
        baseline.memory_usage_mb = metrics.memory_usage_mb
        baseline.cpu_usage_percent = metrics.cpu_usage_percent
        baseline.throughput = metrics.requests_per_second
        baseline.stability_score = metrics.stability_score
        baseline.established_at = now
        baseline.established_elapsed_hours = elapsed_hours
        baseline.established = True

        logger.info(
            f"Performance baseline established at {elapsed_hours:.2f}h: "
            f"{baseline.response_time:.1f}ms avg, {baseline.memory_usage_mb:.1f}MB, "
            f"{baseline.throughput:.2f} req/s"
        )
        return True

    def compute_degradation(
        self, metrics: RunMetrics, elapsed_hours: float
    ) -> DegradationAnalysis | None:
        """Recompute degradation against the baseline; None until a baseline exists."""
        baseline = metrics.performance_baseline
        if not baseline.established:
            return None

        hours_since_baseline = elapsed_hours - baseline.established_elapsed_hours
        memory_growth = 0.0
        if hours_since_baseline > 0:
            memory_growth = (
                (metrics.memory_usage_mb - baseline.memory_usage_mb) / hours_since_baseline * 24.0
            )

        error_rate = metrics.effective_error_rate
        severe = metrics.count_alerts(Severity.HIGH, Severity.CRITICAL)
        critical = metrics.count_alerts(Severity.CRITICAL)

        # High and critical failures only; notices are created already resolved
        resolved = [
            a.resolution_minutes
            for a in metrics.alerts
            if a.resolution_time is not None and a.severity in (Severity.HIGH, Severity.CRITICAL)
        ]
        mttr = sum(resolved) / len(resolved) if resolved else 0.0

        analysis = DegradationAnalysis(
            response_time_degradation=max(
                0.0, _pct_change(metrics.average_response_time, baseline.response_time)
            ),
            memory_growth_rate=memory_growth,
            cpu_trend=_pct_change(metrics.cpu_usage_percent, baseline.cpu_usage_percent),
            throughput_decline=max(
                0.0, -_pct_change(metrics.requests_per_second, baseline.throughput)
            ),
            reliability_index=clamp(100.0 - error_rate * 20.0),
            resilience_rating=clamp(100.0 - critical * 10.0),
            mtbf_hours=elapsed_hours / severe if severe else elapsed_hours,
            mttr_minutes=mttr,
        )
        metrics.degradation_analysis = analysis
        return analysis
