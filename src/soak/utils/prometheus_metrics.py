"""
Prometheus gauges for active soak runs.

Gauges are labelled by run id and refreshed by each run's reporting task
and once more at finalisation. Labels of finished runs are removed when the
run is dropped from the registry.
"""

from contextlib import suppress

from prometheus_client import Gauge

from src.soak.models.schemas import RunMetrics, RunStatus

RUN_REQUESTS_TOTAL = Gauge(
    "soak_run_requests_total", "Requests executed so far", ["run_id"]
)
RUN_REQUESTS_PER_SECOND = Gauge(
    "soak_run_requests_per_second", "Achieved request rate over active run time", ["run_id"]
)
RUN_ERROR_RATE = Gauge(
    "soak_run_error_rate_percent", "Raw error rate including expected rejections", ["run_id"]
)
RUN_EFFECTIVE_ERROR_RATE = Gauge(
    "soak_run_effective_error_rate_percent",
    "Error rate excluding expected adversarial rejections",
    ["run_id"],
)
RUN_RESPONSE_TIME = Gauge(
    "soak_run_response_time_ms", "Response time statistics", ["run_id", "statistic"]
)
RUN_MEMORY = Gauge("soak_run_memory_usage_mb", "Last sampled memory usage", ["run_id"])
RUN_CPU = Gauge("soak_run_cpu_usage_percent", "Last sampled CPU usage", ["run_id"])
RUN_STABILITY = Gauge("soak_run_stability_score", "Composite stability score", ["run_id"])
RUN_HEALTH = Gauge("soak_run_health_score", "Composite health score", ["run_id"])
RUN_OPEN_ALERTS = Gauge("soak_run_open_alerts", "Unresolved alerts", ["run_id"])
RUN_STATUS = Gauge(
    "soak_run_status", "1 for the run's current lifecycle status", ["run_id", "status"]
)

_PER_RUN = (
    RUN_REQUESTS_TOTAL,
    RUN_REQUESTS_PER_SECOND,
    RUN_ERROR_RATE,
    RUN_EFFECTIVE_ERROR_RATE,
    RUN_MEMORY,
    RUN_CPU,
    RUN_STABILITY,
    RUN_HEALTH,
    RUN_OPEN_ALERTS,
)
_RESPONSE_STATISTICS = ("avg", "p95", "p99", "p999", "max")


def publish_run_metrics(run_id: str, metrics: RunMetrics, status: RunStatus) -> None:
    RUN_REQUESTS_TOTAL.labels(run_id).set(metrics.total_requests)
    RUN_REQUESTS_PER_SECOND.labels(run_id).set(metrics.requests_per_second)
    RUN_ERROR_RATE.labels(run_id).set(metrics.error_rate)
    RUN_EFFECTIVE_ERROR_RATE.labels(run_id).set(metrics.effective_error_rate)
    RUN_RESPONSE_TIME.labels(run_id, "avg").set(metrics.average_response_time)
    RUN_RESPONSE_TIME.labels(run_id, "p95").set(metrics.p95_response_time)
    RUN_RESPONSE_TIME.labels(run_id, "p99").set(metrics.p99_response_time)
    RUN_RESPONSE_TIME.labels(run_id, "p999").set(metrics.p999_response_time)
    RUN_RESPONSE_TIME.labels(run_id, "max").set(metrics.max_response_time)
    RUN_MEMORY.labels(run_id).set(metrics.memory_usage_mb)
    RUN_CPU.labels(run_id).set(metrics.cpu_usage_percent)
    RUN_STABILITY.labels(run_id).set(metrics.stability_score)
    RUN_HEALTH.labels(run_id).set(metrics.health_score)
    RUN_OPEN_ALERTS.labels(run_id).set(sum(1 for a in metrics.alerts if not a.resolved))
    for candidate in RunStatus:
        RUN_STATUS.labels(run_id, candidate.value).set(1 if candidate == status else 0)


def _remove(gauge: Gauge, *labels: str) -> None:
    # Series never published for this run
    with suppress(KeyError):
        gauge.remove(*labels)


def remove_run_metrics(run_id: str) -> None:
    """Drop every labelled series belonging to ``run_id``."""
    for gauge in _PER_RUN:
        _remove(gauge, run_id)
    for statistic in _RESPONSE_STATISTICS:
        _remove(RUN_RESPONSE_TIME, run_id, statistic)
    for candidate in RunStatus:
        _remove(RUN_STATUS, run_id, candidate.value)
