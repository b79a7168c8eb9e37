"""
Run Engine.

Owns every per-run analyzer and performs all mutations of a run's
``RunMetrics``. The engine itself holds no lock and schedules nothing:
``SoakRunController`` calls the synchronous tick methods while holding the
run lock, and awaits the collaborator-facing coroutines outside it.
"""

import asyncio
import random
from datetime import datetime

from src.soak.constants.scenarios import VALID_REQUESTS
from src.soak.hal.collaborator import Collaborator
from src.soak.hal.resource_telemetry import ResourceTelemetry, TelemetryContext
from src.soak.models.schemas import (
    Alert,
    AlertType,
    BusinessImpact,
    BusinessMetrics,
    ChaosExperiment,
    FinalReport,
    HealthCheckReport,
    MemoryLeakRecord,
    PerformanceSample,
    RequestDescriptor,
    RequestOutcome,
    RunResult,
    Severity,
    utc_now,
)
from src.soak.services.alerting_engine import AlertingEngine, make_alert
from src.soak.services.business_impact import update_business_metrics
from src.soak.services.chaos_scheduler import ChaosScheduler, StressTestScheduler
from src.soak.services.leak_detector import MemoryTrendDetector
from src.soak.services.metrics_aggregator import MetricsAggregator
from src.soak.services.rate_controller import target_rate_at
from src.soak.services.report_generator import ReportGenerator, build_progress_report
from src.soak.services.request_executor import RequestExecutor
from src.soak.services.scenario_mix import ScenarioSequence, build_scenario_mix
from src.soak.services.stability_analyzer import StabilityAnalyzer
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

# Resource limits probed by the health-check task
HEALTH_CPU_LIMIT = 90.0
HEALTH_DISK_LIMIT = 90.0
HEALTH_LATENCY_LIMIT_MS = 1000.0
HEALTH_CACHE_FLOOR = 50.0


def health_alert_severity(failed_checks: int) -> Severity:
    if failed_checks > 3:
        return Severity.CRITICAL
    if failed_checks > 1:
        return Severity.HIGH
    return Severity.MEDIUM


class RunEngine:
    """All state transitions of one run's metrics."""

    def __init__(
        self,
        result: RunResult,
        collaborator: Collaborator,
        telemetry: ResourceTelemetry,
        rng: random.Random | None = None,
    ):
        self.result = result
        self.config = result.config
        self.metrics = result.metrics
        self.collaborator = collaborator
        self.telemetry = telemetry
        self.rng = rng or random.Random(self.config.seed)

        schedule = self.config.schedule
        self.sequence = ScenarioSequence(build_scenario_mix(self.config, self.rng))
        self.executor = RequestExecutor(collaborator, self.config.collaborator_timeout_seconds)
        self.aggregator = MetricsAggregator(
            self.metrics,
            sample_window=self.config.sample_window,
            trend_buffer_size=self.config.trend_buffer_size,
            error_trend_buffer_size=self.config.error_trend_buffer_size,
        )
        self.stability = StabilityAnalyzer(self.config)
        self.alerting = AlertingEngine(self.config)
        self.leak_detector = MemoryTrendDetector(
            schedule.leak_window_minutes, schedule.leak_min_samples
        )
        self.chaos = ChaosScheduler(self.config, self.rng)
        self.stress = StressTestScheduler(self.config)
        self.reports = ReportGenerator()

    # Foreground -----------------------------------------------------------

    def target_rate(self, elapsed_seconds: float, now: datetime) -> int:
        rate = target_rate_at(
            self.config, elapsed_seconds / 3600.0, now, self.stress.rate_multiplier
        )
        self.metrics.current_target_rate = rate
        return rate

    def next_batch(self, rate: int) -> list[RequestDescriptor]:
        return self.sequence.take(max(1, min(self.config.concurrency, rate)))

    async def execute_batch(self, batch: list[RequestDescriptor]) -> list[RequestOutcome]:
        return await self.executor.execute_batch(batch)

    def record_outcomes(self, outcomes: list[RequestOutcome], elapsed_seconds: float) -> None:
        self.aggregator.record_batch(outcomes, elapsed_seconds)

    # Background ticks -----------------------------------------------------

    def telemetry_tick(self, elapsed_seconds: float, now: datetime) -> PerformanceSample:
        """Sample resources, rescore stability, manage the baseline, close hours."""
        m = self.metrics
        elapsed_hours = elapsed_seconds / 3600.0
        context = TelemetryContext(
            elapsed_hours=elapsed_hours,
            requests_per_second=m.requests_per_second,
            average_response_time=m.average_response_time,
            active_chaos=[(e.type, e.severity.value) for e in self.chaos.active_experiments(m)],
        )
        snapshot = self.telemetry.sample(context)

        self.stability.update_scores(m, snapshot, elapsed_hours)
        sample = self.aggregator.record_resources(snapshot, elapsed_seconds, now)
        self.stability.maybe_establish_baseline(m, elapsed_hours, now)
        self.stability.compute_degradation(m, elapsed_hours)
        self.aggregator.roll_hours(elapsed_seconds)
        return sample

    def alerting_tick(self, now: datetime) -> list[Alert]:
        return self.alerting.evaluate(self.metrics, now)

    def leak_detection_tick(self, now: datetime) -> MemoryLeakRecord | None:
        if not self.config.memory_leak_detection:
            return None
        record, _ = self.leak_detector.detect(self.metrics, now)
        return record

    def chaos_tick(
        self, elapsed_seconds: float, now: datetime
    ) -> tuple[list[ChaosExperiment], list[ChaosExperiment]]:
        return self.chaos.tick(self.metrics, elapsed_seconds, now)

    def stress_test_tick(self, elapsed_seconds: float, now: datetime) -> str | None:
        return self.stress.tick(self.metrics, elapsed_seconds, now)

    def business_tick(self) -> BusinessMetrics | None:
        if not self.config.business_metrics_tracking:
            return None
        return update_business_metrics(self.metrics, self.config)

    async def probe_collaborator(self) -> bool:
        """True when the collaborator answers a known-good validation in time."""
        try:
            validation = await asyncio.wait_for(
                self.collaborator.validate(VALID_REQUESTS[0]),
                self.config.collaborator_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("Health probe timed out waiting for the collaborator")
            return False
        except Exception as e:
            logger.warning(f"Health probe failed: {type(e).__name__}: {e}")
            return False
        return validation.valid

    def record_health_check(
        self, collaborator_responsive: bool, now: datetime
    ) -> HealthCheckReport:
        m = self.metrics
        checks = {
            "memory": m.memory_usage_mb <= self.config.memory_threshold_mb,
            "cpu": m.cpu_usage_percent <= HEALTH_CPU_LIMIT,
            "disk": m.disk_usage_percent <= HEALTH_DISK_LIMIT,
            "network": m.network_latency_ms <= HEALTH_LATENCY_LIMIT_MS,
            "cache": m.cache_hit_rate >= HEALTH_CACHE_FLOOR,
            "error_rate": m.effective_error_rate <= self.config.error_rate_threshold,
            "collaborator": collaborator_responsive,
        }
        failed = [name for name, passed in checks.items() if not passed]
        report = HealthCheckReport(timestamp=now, checks=checks, failed=failed)
        m.last_health_check = report

        if failed:
            alert = make_alert(
                AlertType.HEALTH,
                health_alert_severity(len(failed)),
                f"Health check failed: {', '.join(failed)}",
                ["health-check", *failed],
                now,
                source="health_check",
            )
            m.alerts.append(alert)
            logger.warning(alert.message)
        return report

    def progress_report(self) -> str:
        summary = build_progress_report(self.metrics, self.config)
        logger.info(f"Progress: {summary}")
        return summary

    # Lifecycle ------------------------------------------------------------

    def record_start_alert(self, now: datetime) -> Alert:
        alert = make_alert(
            AlertType.PERFORMANCE,
            Severity.LOW,
            f"Soak run '{self.config.name}' started: {self.config.duration_hours:g}h at "
            f"{self.config.base_request_rate} req/s base rate",
            ["load-generator"],
            now,
            source="lifecycle",
            business_impact=BusinessImpact.NONE,
        )
        alert.resolve(now, auto=True)
        self.metrics.alerts.append(alert)
        return alert

    def close(self, elapsed_seconds: float) -> None:
        """Bring derived figures up to date before the final report."""
        m = self.metrics
        m.elapsed_seconds = max(m.elapsed_seconds, elapsed_seconds)
        if m.elapsed_seconds > 0:
            m.requests_per_second = m.total_requests / m.elapsed_seconds
        self.aggregator.refresh_percentiles()
        self.aggregator.roll_hours(elapsed_seconds)
        self.stability.compute_degradation(m, elapsed_seconds / 3600.0)
        self.business_tick()

    def build_report(self, generated_at: datetime | None = None) -> FinalReport:
        return self.reports.generate(self.result, generated_at or utc_now())
