"""
Alerting Engine.

Threshold rules evaluated against the latest run metrics. Every breach
appends an ``Alert``; alerts are never removed and are resolved only
through ``Alert.resolve``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from src.soak.models.schemas import (
    Alert,
    AlertType,
    BusinessImpact,
    CircuitState,
    HealthStatus,
    RunConfig,
    RunMetrics,
    Severity,
)
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

CPU_THRESHOLD = 70.0
NETWORK_LATENCY_THRESHOLD_MS = 300.0
DISK_THRESHOLD = 85.0
CACHE_HIT_THRESHOLD = 65.0
STABILITY_THRESHOLD = 85.0
HEALTH_SCORE_THRESHOLD = 80.0
# Cumulative error rate is too noisy to alert on below this many requests
MIN_REQUESTS_FOR_ERROR_RATE = 1000

_IMPACT_BY_SEVERITY = {
    Severity.LOW: BusinessImpact.LOW,
    Severity.MEDIUM: BusinessImpact.MEDIUM,
    Severity.HIGH: BusinessImpact.HIGH,
    Severity.CRITICAL: BusinessImpact.CRITICAL,
}


def business_impact_for(severity: Severity) -> BusinessImpact:
    return _IMPACT_BY_SEVERITY[severity]


def tier_by_ratio(value: float, threshold: float) -> Severity:
    """>3x threshold critical, >2x high, otherwise medium."""
    ratio = value / threshold
    if ratio > 3.0:
        return Severity.CRITICAL
    if ratio > 2.0:
        return Severity.HIGH
    return Severity.MEDIUM


def tier_above(value: float, critical: float, high: float) -> Severity:
    if value > critical:
        return Severity.CRITICAL
    if value > high:
        return Severity.HIGH
    return Severity.MEDIUM


def tier_below(value: float, critical: float, high: float) -> Severity:
    if value < critical:
        return Severity.CRITICAL
    if value < high:
        return Severity.HIGH
    return Severity.MEDIUM


def make_alert(
    alert_type: AlertType,
    severity: Severity,
    message: str,
    affected_systems: list[str],
    timestamp: datetime,
    source: str,
    business_impact: BusinessImpact | None = None,
) -> Alert:
    return Alert(
        timestamp=timestamp,
        type=alert_type,
        severity=severity,
        message=message,
        escalated=severity == Severity.CRITICAL,
        affected_systems=list(dict.fromkeys(affected_systems)),
        business_impact=business_impact or business_impact_for(severity),
        source=source,
    )


@dataclass
class Breach:
    alert_type: AlertType
    severity: Severity
    message: str
    affected_systems: list[str]


Rule = Callable[[RunMetrics, RunConfig], Breach | None]


def memory_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if m.memory_usage_mb <= c.memory_threshold_mb:
        return None
    return Breach(
        AlertType.MEMORY,
        tier_by_ratio(m.memory_usage_mb, c.memory_threshold_mb),
        f"Memory usage {m.memory_usage_mb:.1f}MB exceeds threshold {c.memory_threshold_mb:g}MB",
        ["application", "database", "cache"],
    )


def cpu_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if m.cpu_usage_percent <= CPU_THRESHOLD:
        return None
    return Breach(
        AlertType.PERFORMANCE,
        tier_above(m.cpu_usage_percent, 95.0, 85.0),
        f"CPU usage {m.cpu_usage_percent:.1f}% exceeds {CPU_THRESHOLD:g}%",
        ["application", "compute"],
    )


def error_rate_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if (
        m.total_requests < MIN_REQUESTS_FOR_ERROR_RATE
        or m.effective_error_rate <= c.error_rate_threshold
    ):
        return None
    return Breach(
        AlertType.ERROR,
        tier_by_ratio(m.effective_error_rate, c.error_rate_threshold),
        f"Error rate {m.effective_error_rate:.2f}% exceeds threshold {c.error_rate_threshold:g}%",
        ["application", "currency-service"],
    )


def response_time_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if m.total_requests == 0 or m.average_response_time <= c.response_time_threshold_ms:
        return None
    return Breach(
        AlertType.PERFORMANCE,
        tier_by_ratio(m.average_response_time, c.response_time_threshold_ms),
        f"Average response time {m.average_response_time:.1f}ms exceeds "
        f"{c.response_time_threshold_ms:g}ms",
        ["application", "network"],
    )


def network_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if not c.network_simulation or m.network_latency_ms <= NETWORK_LATENCY_THRESHOLD_MS:
        return None
    severity = Severity.HIGH if m.network_latency_ms > 800.0 else Severity.MEDIUM
    return Breach(
        AlertType.NETWORK,
        severity,
        f"Network latency {m.network_latency_ms:.0f}ms exceeds "
        f"{NETWORK_LATENCY_THRESHOLD_MS:g}ms",
        ["network", "load-balancer"],
    )


def disk_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if not c.disk_monitoring or m.disk_usage_percent <= DISK_THRESHOLD:
        return None
    return Breach(
        AlertType.DISK,
        tier_above(m.disk_usage_percent, 95.0, 90.0),
        f"Disk usage {m.disk_usage_percent:.1f}% exceeds {DISK_THRESHOLD:g}%",
        ["storage", "logging"],
    )


def cache_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if not c.cache_monitoring or m.cache_hit_rate >= CACHE_HIT_THRESHOLD:
        return None
    severity = Severity.HIGH if m.cache_hit_rate < 40.0 else Severity.MEDIUM
    return Breach(
        AlertType.PERFORMANCE,
        severity,
        f"Cache hit rate {m.cache_hit_rate:.1f}% below {CACHE_HIT_THRESHOLD:g}%",
        ["cache", "database"],
    )


def stability_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if m.stability_score >= STABILITY_THRESHOLD:
        return None
    return Breach(
        AlertType.STABILITY,
        tier_below(m.stability_score, 70.0, 80.0),
        f"Stability score {m.stability_score:.1f} below {STABILITY_THRESHOLD:g}",
        ["application"],
    )


def health_score_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if m.health_score >= HEALTH_SCORE_THRESHOLD:
        return None
    return Breach(
        AlertType.HEALTH,
        tier_below(m.health_score, 60.0, 70.0),
        f"Health score {m.health_score:.1f} below {HEALTH_SCORE_THRESHOLD:g}",
        ["application"],
    )


def circuit_breaker_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if not c.circuit_breaker_testing or m.circuit_breaker_state == CircuitState.CLOSED:
        return None
    severity = Severity.HIGH if m.circuit_breaker_state == CircuitState.OPEN else Severity.MEDIUM
    return Breach(
        AlertType.HEALTH,
        severity,
        f"Circuit breaker {m.circuit_breaker_state.value} "
        f"at {m.effective_error_rate:.2f}% error rate",
        ["currency-service", "circuit-breaker"],
    )


def health_check_rule(m: RunMetrics, c: RunConfig) -> Breach | None:
    if not c.health_check_monitoring or m.health_check_status == HealthStatus.HEALTHY:
        return None
    severity = (
        Severity.HIGH if m.health_check_status == HealthStatus.UNHEALTHY else Severity.MEDIUM
    )
    return Breach(
        AlertType.HEALTH,
        severity,
        f"Health status {m.health_check_status.value}",
        ["application", "health-check"],
    )


PERFORMANCE_RULES: dict[str, Rule] = {
    "memory": memory_rule,
    "cpu": cpu_rule,
    "error_rate": error_rate_rule,
    "response_time": response_time_rule,
    "stability": stability_rule,
    "health_score": health_score_rule,
}

INFRASTRUCTURE_RULES: dict[str, Rule] = {
    "network": network_rule,
    "disk": disk_rule,
    "cache": cache_rule,
    "circuit_breaker": circuit_breaker_rule,
    "health_check": health_check_rule,
}


class AlertingEngine:
    """Evaluates the rule set and appends alerts to the run's log."""

    def __init__(self, config: RunConfig):
        self.config = config
        self._last_fired: dict[str, datetime] = {}
        self._bypasses_seen = 0

    def rules(self) -> dict[str, Rule]:
        rules: dict[str, Rule] = {}
        if self.config.performance_alerts:
            rules.update(PERFORMANCE_RULES)
        rules.update(INFRASTRUCTURE_RULES)
        return rules

    def evaluate(self, metrics: RunMetrics, now: datetime) -> list[Alert]:
        """Run every enabled rule once; returns the alerts appended."""
        raised = []
        for name, rule in self.rules().items():
            breach = rule(metrics, self.config)
            if breach is None or self._suppressed(name, now):
                continue
            raised.append(self._emit(metrics, name, breach, now))

        bypass_alert = self._check_validation_bypasses(metrics, now)
        if bypass_alert is not None:
            raised.append(bypass_alert)
        return raised

    def _check_validation_bypasses(self, metrics: RunMetrics, now: datetime) -> Alert | None:
        new_bypasses = metrics.validation_bypasses - self._bypasses_seen
        if not self.config.security_validation or new_bypasses <= 0:
            return None
        if self._suppressed("validation_bypass", now):
            return None
        self._bypasses_seen = metrics.validation_bypasses
        return self._emit(
            metrics,
            "validation_bypass",
            Breach(
                AlertType.SECURITY,
                Severity.HIGH,
                f"{new_bypasses} adversarial request(s) passed input validation",
                ["validation", "currency-service"],
            ),
            now,
        )

    def _suppressed(self, name: str, now: datetime) -> bool:
        window = self.config.alert_suppression_seconds
        last = self._last_fired.get(name)
        return window > 0 and last is not None and (now - last).total_seconds() < window

    def _emit(self, metrics: RunMetrics, name: str, breach: Breach, now: datetime) -> Alert:
        alert = make_alert(
            breach.alert_type,
            breach.severity,
            breach.message,
            breach.affected_systems,
            now,
            source=f"rule:{name}",
        )
        metrics.alerts.append(alert)
        self._last_fired[name] = now
        logger.warning(f"{alert.severity.value.upper()} {alert.type.value} alert: {alert.message}")
        return alert
