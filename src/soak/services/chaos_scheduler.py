"""
Chaos Experiment Scheduler and stress-test intervals.

Both are transient events driven by run time: they start on a fixed
period, announce themselves with an alert, and on completion auto-resolve
that alert and append a recovery notice. Completion is polled, so an event
can never complete before its duration has elapsed.
"""

import random
from datetime import datetime

from src.soak.constants.chaos import (
    BUSINESS_IMPACT_NARRATIVES,
    CHAOS_CATALOG,
    CHAOS_SEVERITIES,
    IMPACT_LEVELS,
    LESSONS_LEARNED,
)
from src.soak.models.schemas import (
    Alert,
    AlertType,
    BusinessImpact,
    ChaosExperiment,
    ChaosSeverity,
    ExperimentStatus,
    RunConfig,
    RunMetrics,
    Severity,
)
from src.soak.services.alerting_engine import make_alert
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

START_ALERT_SEVERITY = {
    ChaosSeverity.MILD: Severity.LOW,
    ChaosSeverity.MODERATE: Severity.MEDIUM,
    ChaosSeverity.SEVERE: Severity.HIGH,
}


def _recovery_notice(
    alert_type: AlertType, message: str, affected: list[str], now: datetime, source: str
) -> Alert:
    notice = make_alert(
        alert_type,
        Severity.LOW,
        message,
        affected,
        now,
        source=source,
        business_impact=BusinessImpact.NONE,
    )
    notice.resolve(now, auto=True)
    return notice


class ChaosScheduler:
    """Launches one experiment per period and completes it after its duration."""

    def __init__(self, config: RunConfig, rng: random.Random):
        self.config = config
        self.rng = rng
        self.interval_seconds = config.schedule.chaos_interval_hours * 3600.0
        self.next_launch_at = self.interval_seconds

    def active_experiments(self, metrics: RunMetrics) -> list[ChaosExperiment]:
        return [e for e in metrics.chaos_experiments if e.status == ExperimentStatus.ACTIVE]

    def tick(
        self, metrics: RunMetrics, elapsed_seconds: float, now: datetime
    ) -> tuple[list[ChaosExperiment], list[ChaosExperiment]]:
        """Complete due experiments, then launch a new one if the period has come round."""
        completed = self.complete_due(metrics, elapsed_seconds, now)
        started = []
        if self.config.chaos_engineering and elapsed_seconds >= self.next_launch_at:
            started.append(self.launch(metrics, elapsed_seconds, now))
            while self.next_launch_at <= elapsed_seconds:
                self.next_launch_at += self.interval_seconds
        return started, completed

    def launch(
        self,
        metrics: RunMetrics,
        elapsed_seconds: float,
        now: datetime,
        chaos_type: str | None = None,
        severity: str | None = None,
        duration_seconds: float | None = None,
    ) -> ChaosExperiment:
        """Start one experiment; unspecified parameters are drawn from the catalog."""
        chaos_type = chaos_type or self.rng.choice(sorted(CHAOS_CATALOG))
        if chaos_type not in CHAOS_CATALOG:
            raise ValueError(f"Unknown chaos experiment type: {chaos_type}")
        entry = CHAOS_CATALOG[chaos_type]

        severity = severity or self.rng.choice(CHAOS_SEVERITIES)
        chaos_severity = ChaosSeverity(severity)
        if duration_seconds is None:
            duration_seconds = float(entry["durations"][CHAOS_SEVERITIES.index(severity)])

        affected = [chaos_type.replace("_", "-")]
        alert = make_alert(
            AlertType.CHAOS,
            START_ALERT_SEVERITY[chaos_severity],
            f"Chaos experiment started: {entry['description']} "
            f"({severity}, {duration_seconds:g}s)",
            affected,
            now,
            source=f"chaos:{chaos_type}",
            business_impact=(
                BusinessImpact.MEDIUM
                if chaos_severity == ChaosSeverity.SEVERE
                else BusinessImpact.LOW
            ),
        )
        alert.escalated = chaos_severity == ChaosSeverity.SEVERE
        metrics.alerts.append(alert)

        experiment = ChaosExperiment(
            type=chaos_type,
            severity=chaos_severity,
            duration_seconds=duration_seconds,
            description=entry["description"],
            impact=entry["impact"],
            impact_level=IMPACT_LEVELS[severity],
            business_impact=BUSINESS_IMPACT_NARRATIVES[severity],
            lessons_learned=LESSONS_LEARNED[severity],
            started_at=now,
            started_elapsed_seconds=elapsed_seconds,
            start_alert_id=alert.id,
        )
        metrics.chaos_experiments.append(experiment)
        logger.info(f"Chaos experiment {experiment.id} started: {chaos_type} ({severity})")
        return experiment

    def complete_due(
        self, metrics: RunMetrics, elapsed_seconds: float, now: datetime
    ) -> list[ChaosExperiment]:
        completed = []
        for experiment in self.active_experiments(metrics):
            ends_at = experiment.started_elapsed_seconds + experiment.duration_seconds
            if elapsed_seconds < ends_at:
                continue

            experiment.status = ExperimentStatus.COMPLETED
            experiment.completed_at = now
            experiment.recovery_time_seconds = elapsed_seconds - experiment.started_elapsed_seconds

            start_alert = metrics.find_alert(experiment.start_alert_id or "")
            if start_alert is not None and not start_alert.resolved:
                start_alert.resolve(now, auto=True)

            metrics.alerts.append(
                _recovery_notice(
                    AlertType.CHAOS,
                    f"Chaos experiment completed: {experiment.type} recovered after "
                    f"{experiment.recovery_time_seconds:.0f}s",
                    [experiment.type.replace("_", "-")],
                    now,
                    source=f"chaos:{experiment.type}",
                )
            )
            metrics.failure_recoveries += 1
            completed.append(experiment)
            logger.info(f"Chaos experiment {experiment.id} completed, system recovered")
        return completed


class StressTestScheduler:
    """Periodic windows during which the target rate is multiplied."""

    def __init__(self, config: RunConfig):
        self.config = config
        schedule = config.schedule
        self.interval_seconds = schedule.stress_test_interval_hours * 3600.0
        self.duration_seconds = schedule.stress_test_duration_minutes * 60.0
        self.multiplier = schedule.stress_test_multiplier
        self.next_start_at = self.interval_seconds
        self.active_since: float | None = None
        self._start_alert_id: str | None = None

    @property
    def active(self) -> bool:
        return self.active_since is not None

    @property
    def rate_multiplier(self) -> float:
        return self.multiplier if self.active else 1.0

    def tick(self, metrics: RunMetrics, elapsed_seconds: float, now: datetime) -> str | None:
        """Returns ``"started"``, ``"completed"`` or None."""
        if self.active_since is not None:
            if elapsed_seconds - self.active_since < self.duration_seconds:
                return None
            self._finish(metrics, elapsed_seconds, now)
            return "completed"

        if not self.config.stress_test_intervals or elapsed_seconds < self.next_start_at:
            return None

        self.active_since = elapsed_seconds
        while self.next_start_at <= elapsed_seconds:
            self.next_start_at += self.interval_seconds
        alert = make_alert(
            AlertType.PERFORMANCE,
            Severity.MEDIUM,
            f"Stress test started: rate x{self.multiplier:g} for "
            f"{self.duration_seconds / 60:g} minutes",
            ["application", "load-generator"],
            now,
            source="stress_test",
        )
        metrics.alerts.append(alert)
        self._start_alert_id = alert.id
        logger.info(alert.message)
        return "started"

    def _finish(self, metrics: RunMetrics, elapsed_seconds: float, now: datetime) -> None:
        start_alert = metrics.find_alert(self._start_alert_id or "")
        if start_alert is not None and not start_alert.resolved:
            start_alert.resolve(now, auto=True)

        metrics.alerts.append(
            _recovery_notice(
                AlertType.PERFORMANCE,
                "Stress test completed; load returned to normal",
                ["application", "load-generator"],
                now,
                source="stress_test",
            )
        )
        metrics.stress_tests_run += 1
        self.active_since = None
        self._start_alert_id = None
        logger.info("Stress test completed")
