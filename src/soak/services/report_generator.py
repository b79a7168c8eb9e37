"""Final report generation for completed soak runs.

Reports are a deterministic function of the final ``RunResult`` and the
generation timestamp.
"""

from datetime import datetime

import numpy as np

from src.soak.core.exceptions import ReportGenerationError
from src.soak.models.schemas import (
    AlertType,
    DegradationAnalysis,
    ExperimentStatus,
    FinalReport,
    RunConfig,
    RunMetrics,
    RunResult,
    RunStatus,
    Severity,
    utc_now,
)
from src.soak.services.business_impact import estimate_business_impact
from src.soak.services.stability_analyzer import clamp
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

READINESS_WEIGHTS = {
    "stability": 0.25,
    "error": 0.25,
    "reliability": 0.20,
    "resilience": 0.15,
    "availability": 0.15,
}


def enterprise_readiness_score(
    stability: float,
    error_rate: float,
    reliability_index: float,
    resilience_rating: float,
    availability: float,
) -> float:
    """Weighted blend of the readiness inputs, clamped to 0-100 and rounded."""
    score = (
        stability * READINESS_WEIGHTS["stability"]
        + (100.0 - error_rate * 10.0) * READINESS_WEIGHTS["error"]
        + reliability_index * READINESS_WEIGHTS["reliability"]
        + resilience_rating * READINESS_WEIGHTS["resilience"]
        + availability * READINESS_WEIGHTS["availability"]
    )
    return round(clamp(score), 2)


def _tier(value: float, medium: float, low: float, higher_is_worse: bool = True) -> str:
    if higher_is_worse:
        if value > medium:
            return "MEDIUM"
        if value > low:
            return "LOW"
        return "MINIMAL"
    if value < medium:
        return "MEDIUM"
    if value < low:
        return "LOW"
    return "MINIMAL"


class ReportGenerator:
    """Builds the ``FinalReport`` for a run that reached a terminal state."""

    def generate(self, result: RunResult, generated_at: datetime | None = None) -> FinalReport:
        if not result.status.is_terminal:
            raise ReportGenerationError(
                f"Run {result.run_id} is {result.status.value}; reports need a finished run"
            )
        m = result.metrics
        config = result.config
        degradation = m.degradation_analysis or DegradationAnalysis(
            reliability_index=clamp(100.0 - m.effective_error_rate * 20.0),
            resilience_rating=clamp(100.0 - m.count_alerts(Severity.CRITICAL) * 10.0),
            mtbf_hours=m.elapsed_seconds / 3600.0,
        )
        business = estimate_business_impact(
            m.effective_error_rate,
            m.average_response_time,
            config.response_time_threshold_ms,
            m.count_alerts(Severity.CRITICAL),
        )
        readiness = enterprise_readiness_score(
            m.stability_score,
            m.effective_error_rate,
            degradation.reliability_index,
            degradation.resilience_rating,
            business.availability,
        )

        report = FinalReport(
            generated_at=generated_at or result.end_time or utc_now(),
            degraded=result.status == RunStatus.FAILED,
            executive_summary=self._executive_summary(result, readiness),
            key_findings=self._key_findings(m, degradation),
            performance_analysis=self._performance_analysis(m, config.response_time_threshold_ms),
            memory_analysis=self._memory_analysis(m, degradation),
            stability_analysis=self._stability_analysis(m),
            security_analysis=self._security_analysis(m),
            network_analysis=self._network_analysis(m),
            chaos_engineering_results=self._chaos_results(m),
            business_impact_assessment=(
                f"Availability {business.availability:.2f}%, SLA compliance "
                f"{business.sla_compliance:.1f}%, error budget remaining "
                f"{business.error_budget_remaining:.1f}%, customer impact "
                f"{business.customer_impact:.1f}%, revenue protection "
                f"{business.revenue_protection:.1f}%, brand reputation "
                f"{business.brand_reputation:.1f}%."
            ),
            recommendations=self._recommendations(m, degradation),
            risk_assessment=self._risk_assessment(m, degradation, business.availability),
            long_term_trends=self._long_term_trends(m),
            comparison_with_baseline=self._baseline_comparison(m, degradation),
            enterprise_readiness_score=readiness,
            certification_recommendations=self._certification(readiness, m),
        )
        logger.info(f"Final report generated, enterprise readiness {readiness:.1f}")
        return report

    def _executive_summary(self, result: RunResult, readiness: float) -> str:
        m = result.metrics
        hours = m.elapsed_seconds / 3600.0
        outcome = {
            RunStatus.COMPLETED: "completed its full duration",
            RunStatus.CANCELLED: "was stopped before its planned duration",
            RunStatus.FAILED: "failed before completion; figures cover the data collected",
        }.get(result.status, "has not finished")
        summary = (
            f"Soak run '{result.config.name}' {outcome} after {hours:.2f} hours of "
            f"{result.config.duration_hours:g} planned. It executed {m.total_requests:,} requests "
            f"at {m.requests_per_second:.2f} req/s with an unexpected error rate of "
            f"{m.effective_error_rate:.2f}% and a final stability score of "
            f"{m.stability_score:.1f}. Enterprise readiness: {readiness:.1f}/100."
        )
        if result.failure_reason:
            summary += f" Failure reason: {result.failure_reason}."
        return summary

    def _key_findings(self, m: RunMetrics, degradation: DegradationAnalysis) -> list[str]:
        caught_pct = (m.errors_caught / m.failed_requests * 100.0) if m.failed_requests else 100.0
        return [
            f"Processed {m.total_requests:,} requests, {m.successful_requests:,} successful.",
            f"{caught_pct:.1f}% of failures carried a structured error classification.",
            f"{m.expected_rejections:,} adversarial inputs were rejected by validation.",
            f"{m.validation_bypasses:,} adversarial inputs bypassed validation.",
            f"p95/p99/p99.9 response times were {m.p95_response_time:.1f}/"
            f"{m.p99_response_time:.1f}/{m.p999_response_time:.1f} ms.",
            f"Memory grew at {degradation.memory_growth_rate:.1f} MB/day after baseline.",
            f"{len(m.alerts)} alerts raised, {m.count_alerts(Severity.CRITICAL)} critical.",
            f"{m.failure_recoveries} recoveries from injected failures.",
        ]

    def _performance_analysis(self, m: RunMetrics, threshold: float) -> str:
        min_rt = f"{m.min_response_time:.1f}" if m.min_response_time is not None else "n/a"
        verdict = "within" if m.average_response_time <= threshold else "above"
        return (
            f"Average response time {m.average_response_time:.1f} ms ({verdict} the "
            f"{threshold:g} ms threshold), min {min_rt} ms, max {m.max_response_time:.1f} ms, "
            f"p99 {m.p99_response_time:.1f} ms. Throughput {m.requests_per_second:.2f} req/s "
            f"across {m.stress_tests_run} stress test interval(s)."
        )

    def _memory_analysis(self, m: RunMetrics, degradation: DegradationAnalysis) -> str:
        leaks = [r for r in m.memory_leak_detection if r.leak_severity > 0]
        worst = max((r.leak_severity for r in leaks), default=0)
        return (
            f"Final memory usage {m.memory_usage_mb:.1f} MB; growth "
            f"{degradation.memory_growth_rate:.1f} MB/day. {len(m.memory_leak_detection)} leak "
            f"analyses ran, {len(leaks)} flagged growth (worst severity {worst})."
        )

    def _stability_analysis(self, m: RunMetrics) -> str:
        stability = [s.stability_score for s in m.performance_trends]
        low = float(np.min(stability)) if stability else m.stability_score
        return (
            f"Stability ended at {m.stability_score:.1f} (lowest observed {low:.1f}); health "
            f"score {m.health_score:.1f}, status {m.health_check_status.value}, circuit breaker "
            f"{m.circuit_breaker_state.value}."
        )

    def _security_analysis(self, m: RunMetrics) -> str:
        bypass = (
            "No adversarial input passed validation."
            if m.validation_bypasses == 0
            else f"{m.validation_bypasses} adversarial inputs passed validation and need review."
        )
        return (
            f"{m.security_violations:,} security-tagged requests were rejected. "
            f"{bypass} {sum(1 for a in m.alerts if a.type == AlertType.SECURITY)} security "
            f"alerts raised."
        )

    def _network_analysis(self, m: RunMetrics) -> str:
        latencies = [s.network_latency_ms for s in m.performance_trends]
        avg = float(np.mean(latencies)) if latencies else m.network_latency_ms
        return (
            f"Network latency averaged {avg:.1f} ms (final {m.network_latency_ms:.1f} ms); "
            f"{m.timeouts} collaborator calls timed out."
        )

    def _chaos_results(self, m: RunMetrics) -> str:
        experiments = m.chaos_experiments
        if not experiments:
            return "No chaos experiments ran."
        completed = [e for e in experiments if e.status == ExperimentStatus.COMPLETED]
        recovery = [e.recovery_time_seconds or 0.0 for e in completed]
        mean_recovery = float(np.mean(recovery)) if recovery else 0.0
        types = ", ".join(sorted({e.type for e in experiments}))
        return (
            f"{len(experiments)} experiments ({types}); {len(completed)} recovered with mean "
            f"recovery time {mean_recovery:.0f}s."
        )

    def _recommendations(self, m: RunMetrics, degradation: DegradationAnalysis) -> list[str]:
        recommendations = []
        if degradation.response_time_degradation > 20:
            recommendations.append(
                f"Response time degraded {degradation.response_time_degradation:.1f}% against "
                f"baseline; profile slow paths under sustained load"
            )
        if degradation.memory_growth_rate > 75:
            recommendations.append(
                f"Memory grows {degradation.memory_growth_rate:.1f} MB/day; investigate "
                f"object retention and cache eviction"
            )
        if m.count_alerts(Severity.CRITICAL) > 5:
            recommendations.append(
                "More than five critical alerts fired; review alert causes before release"
            )
        if m.effective_error_rate > 3:
            recommendations.append(
                f"Unexpected error rate {m.effective_error_rate:.2f}% is high; harden error "
                f"handling in the conversion path"
            )
        if m.validation_bypasses > 0:
            recommendations.append(
                "Tighten input validation; adversarial inputs reached the conversion operation"
            )
        if m.errors_not_caught > 0:
            recommendations.append(
                f"{m.errors_not_caught} failures had no error classification; add structured "
                f"error types"
            )
        if not recommendations:
            recommendations.append("No action required; system behaved within thresholds")
        return recommendations

    def _risk_assessment(
        self, m: RunMetrics, degradation: DegradationAnalysis, availability: float
    ) -> dict[str, str]:
        return {
            "performance": _tier(degradation.response_time_degradation, 25, 15),
            "stability": _tier(m.stability_score, 85, 95, higher_is_worse=False),
            "errors": _tier(m.effective_error_rate, 8, 4),
            "security": "MEDIUM" if m.validation_bypasses or m.security_violations > 50 else "LOW",
            "availability": "MEDIUM" if availability < 99 else "LOW",
        }

    def _long_term_trends(self, m: RunMetrics) -> str:
        if len(m.hourly_breakdown) < 2:
            return f"{len(m.hourly_breakdown)} hourly record(s); not enough data for trends."
        hours = np.array([r.hour for r in m.hourly_breakdown], dtype=float)
        response = np.array([r.avg_response_time for r in m.hourly_breakdown], dtype=float)
        memory = np.array([r.memory_usage_mb for r in m.hourly_breakdown], dtype=float)
        rt_slope = float(np.polyfit(hours, response, 1)[0])
        mem_slope = float(np.polyfit(hours, memory, 1)[0])
        return (
            f"Over {len(hours)} hours, response time changed {rt_slope:+.2f} ms/hour and "
            f"memory {mem_slope:+.2f} MB/hour."
        )

    def _baseline_comparison(self, m: RunMetrics, degradation: DegradationAnalysis) -> str:
        baseline = m.performance_baseline
        if not baseline.established:
            return "No baseline was established (run ended before warm-up or baselining disabled)."
        return (
            f"Against the baseline of {baseline.response_time:.1f} ms / "
            f"{baseline.memory_usage_mb:.1f} MB / {baseline.throughput:.2f} req/s: response time "
            f"+{degradation.response_time_degradation:.1f}%, CPU {degradation.cpu_trend:+.1f}%, "
            f"throughput -{degradation.throughput_decline:.1f}%. MTBF "
            f"{degradation.mtbf_hours:.2f}h, MTTR {degradation.mttr_minutes:.1f} min."
        )

    def _certification(self, readiness: float, m: RunMetrics) -> list[str]:
        if readiness >= 90:
            level = "Certified for production soak endurance"
        elif readiness >= 75:
            level = "Conditionally certified; address recommendations first"
        else:
            level = "Not certified; rerun after fixes"
        recommendations = [level]
        if m.elapsed_seconds < 48 * 3600:
            recommendations.append("Run at least 48 hours for an endurance certification")
        return recommendations


def build_progress_report(metrics: RunMetrics, config: RunConfig) -> str:
    """One-line progress summary emitted every reporting interval."""
    hours = metrics.elapsed_seconds / 3600.0
    progress = min(100.0, hours / config.duration_hours * 100.0)
    active_chaos = sum(1 for e in metrics.chaos_experiments if e.status == ExperimentStatus.ACTIVE)
    open_alerts = sum(1 for a in metrics.alerts if not a.resolved)
    return (
        f"{progress:.1f}% ({hours:.2f}h/{config.duration_hours:g}h) | "
        f"{metrics.total_requests:,} requests @ {metrics.requests_per_second:.2f} req/s "
        f"(target {metrics.current_target_rate}) | error {metrics.effective_error_rate:.2f}% | "
        f"avg {metrics.average_response_time:.1f}ms p99 {metrics.p99_response_time:.1f}ms | "
        f"mem {metrics.memory_usage_mb:.0f}MB cpu {metrics.cpu_usage_percent:.0f}% | "
        f"stability {metrics.stability_score:.1f} | {open_alerts} open alerts, "
        f"{active_chaos} active chaos"
    )
