"""
Business Impact Estimator.

Heuristic figures recomputed from scratch on every call.
"""

from src.soak.models.schemas import BusinessMetrics, RunConfig, RunMetrics, Severity


def estimate_business_impact(
    error_rate: float,
    avg_response_time: float,
    response_time_threshold: float,
    critical_alert_count: int,
) -> BusinessMetrics:
    customer_impact = min(100.0, error_rate * 20.0)
    return BusinessMetrics(
        availability=max(95.0, 100.0 - error_rate * 2.0),
        error_budget_remaining=max(0.0, 100.0 - error_rate * 50.0),
        sla_compliance=max(90.0, 100.0 - (avg_response_time / response_time_threshold) * 10.0),
        customer_impact=customer_impact,
        revenue_protection=max(0.0, 100.0 - customer_impact),
        brand_reputation=max(70.0, 100.0 - critical_alert_count * 5.0),
    )


def update_business_metrics(metrics: RunMetrics, config: RunConfig) -> BusinessMetrics:
    metrics.business_metrics = estimate_business_impact(
        metrics.effective_error_rate,
        metrics.average_response_time,
        config.response_time_threshold_ms,
        metrics.count_alerts(Severity.CRITICAL),
    )
    return metrics.business_metrics
