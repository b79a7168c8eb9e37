"""Data models and schemas for the soak harness.

Run configuration and everything that ends up in an exported ``RunResult``
are pydantic models so the export round-trips through JSON. Request
descriptors and outcomes are transient, produced and consumed inside one
batch, and stay plain frozen dataclasses.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.soak.constants.scenarios import SCENARIO_CATALOG
from src.soak.core.exceptions import AlertResolutionError


def utc_now() -> datetime:
    return datetime.now(UTC)


class RunStatus(str, Enum):
    """Run lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.CANCELLED, RunStatus.FAILED)


class Severity(str, Enum):
    """Alert and request severity, ordered low to critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class AlertType(str, Enum):
    PERFORMANCE = "performance"
    MEMORY = "memory"
    ERROR = "error"
    STABILITY = "stability"
    NETWORK = "network"
    DISK = "disk"
    SECURITY = "security"
    CHAOS = "chaos"
    HEALTH = "health"


class BusinessImpact(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CircuitState(str, Enum):
    CLOSED = "closed"
    HALF_OPEN = "half_open"
    OPEN = "open"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ChaosSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class ExperimentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


RequestKind = Literal["valid", "adversarial"]


# --------------------------------------------------------------------------
# Configuration
# --------------------------------------------------------------------------


class ScheduleConfig(BaseModel):
    """Background task periods, in run-time units."""

    model_config = ConfigDict(frozen=True)

    telemetry_interval_seconds: float = Field(default=2.0, gt=0, le=3600)
    alert_interval_seconds: float = Field(default=10.0, gt=0, le=3600)
    leak_detection_interval_seconds: float = Field(default=1200.0, gt=0)
    leak_window_minutes: float = Field(default=45.0, gt=0, le=720)
    leak_min_samples: int = Field(default=10, ge=4)
    chaos_interval_hours: float = Field(default=6.0, gt=0)
    poll_interval_seconds: float = Field(default=1.0, gt=0, le=60)
    health_check_interval_seconds: float = Field(default=30.0, gt=0)
    business_interval_seconds: float = Field(default=60.0, gt=0)
    stress_test_interval_hours: float = Field(default=3.0, gt=0)
    stress_test_duration_minutes: float = Field(default=15.0, gt=0)
    stress_test_multiplier: float = Field(default=4.0, ge=1, le=20)
    baseline_warmup_minutes: float = Field(default=60.0, ge=0)


def _default_scenario_weights() -> dict[str, float]:
    return {
        "extreme_data_types": 11.0,
        "currency_attacks": 11.0,
        "boundary_violations": 11.0,
        "security_injections": 11.0,
        "malformed_data": 11.0,
        "mathematical_edge_cases": 10.0,
    }


class RunConfig(BaseModel):
    """Immutable snapshot of everything a run needs to know up front."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="marathon", min_length=1, max_length=120)
    duration_hours: float = Field(default=72.0, ge=1, le=720)
    base_request_rate: int = Field(default=25, ge=1, le=10000)
    concurrency: int = Field(default=15, ge=1, le=1000)
    scenario_weights: dict[str, float] = Field(default_factory=_default_scenario_weights)
    include_valid_requests: bool = True
    valid_request_percentage: float = Field(default=35.0, ge=0, le=100)

    memory_threshold_mb: float = Field(default=1024.0, gt=0)
    response_time_threshold_ms: float = Field(default=1000.0, gt=0)
    error_rate_threshold: float = Field(default=1.5, gt=0, le=100)
    reporting_interval_minutes: float = Field(default=3.0, gt=0, le=1440)

    # Feature toggles
    performance_alerts: bool = True
    memory_leak_detection: bool = True
    performance_baselining: bool = True
    chaos_engineering: bool = True
    business_metrics_tracking: bool = True
    load_variation: bool = True
    night_mode_reduction: float = Field(default=60.0, ge=0, le=100)
    weekend_mode_reduction: float = Field(default=40.0, ge=0, le=100)
    stress_test_intervals: bool = True
    health_check_monitoring: bool = True
    circuit_breaker_testing: bool = True
    network_simulation: bool = True
    disk_monitoring: bool = True
    cache_monitoring: bool = True
    security_validation: bool = True

    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    sample_window: int = Field(default=5000, ge=100, le=100000)
    trend_buffer_size: int = Field(default=3000, ge=10, le=100000)
    error_trend_buffer_size: int = Field(default=1000, ge=10, le=100000)
    collaborator_timeout_seconds: float = Field(default=10.0, gt=0, le=600)
    alert_suppression_seconds: float = Field(default=300.0, ge=0)
    seed: int | None = None

    @model_validator(mode="after")
    def _check_mix(self) -> "RunConfig":
        unknown = sorted(set(self.scenario_weights) - set(SCENARIO_CATALOG))
        if unknown:
            raise ValueError(f"Unknown scenario categories: {', '.join(unknown)}")

        for category, weight in self.scenario_weights.items():
            if not 0 <= weight <= 100:
                raise ValueError(f"Weight for {category} must be between 0 and 100, got {weight}")

        valid_share = self.valid_request_percentage if self.include_valid_requests else 0.0
        total = sum(self.scenario_weights.values()) + valid_share
        if total <= 0:
            raise ValueError("Scenario mix is empty: all weights are zero")
        if abs(total - 100.0) > 1.0:
            raise ValueError(
                f"Scenario weights plus valid-request percentage must sum to 100, got {total:g}"
            )
        return self

    @property
    def duration_seconds(self) -> float:
        return self.duration_hours * 3600.0


# --------------------------------------------------------------------------
# Transient request records
# --------------------------------------------------------------------------


@dataclass(frozen=True)
class RequestDescriptor:
    """One entry of the precomputed scenario sequence."""

    kind: RequestKind
    payload: dict[str, Any]
    category: str | None = None
    severity: Severity | None = None
    category_tag: str | None = None  # validation | security
    expects_rejection: bool = False


@dataclass(frozen=True)
class RequestOutcome:
    """Result of executing one descriptor. Never mutated after creation."""

    timestamp: datetime
    success: bool
    response_time_ms: float
    kind: RequestKind
    error_type: str | None = None  # structured classification from the collaborator
    error_message: str | None = None
    severity: Severity | None = None
    category: str | None = None
    expected_rejection: bool = False
    validation_bypass: bool = False
    timed_out: bool = False


@dataclass
class ResourceSnapshot:
    """One reading from a resource telemetry source."""

    memory_usage_mb: float
    cpu_usage_percent: float
    network_latency_ms: float
    disk_usage_percent: float
    cache_hit_rate: float
    thread_count: int = 0
    gc_collections: int = 0
    extra: dict[str, float] = field(default_factory=dict)


# --------------------------------------------------------------------------
# Run-state records
# --------------------------------------------------------------------------


class Alert(BaseModel):
    """Operator-visible record. Never deleted; resolved at most once."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: datetime = Field(default_factory=utc_now)
    type: AlertType
    severity: Severity
    message: str
    resolved: bool = False
    auto_resolved: bool = False
    resolution_time: datetime | None = None
    escalated: bool = False
    affected_systems: list[str] = Field(default_factory=list)
    business_impact: BusinessImpact = BusinessImpact.LOW
    source: str = ""

    def resolve(self, at: datetime, auto: bool = False) -> None:
        """Mark the alert resolved. Raises if already resolved or if ``at`` precedes creation."""
        if self.resolved:
            raise AlertResolutionError(f"Alert {self.id} is already resolved")
        if at < self.timestamp:
            raise AlertResolutionError(
                f"Alert {self.id} cannot be resolved before it was raised"
            )
        self.resolved = True
        self.auto_resolved = auto
        self.resolution_time = at

    @property
    def resolution_minutes(self) -> float | None:
        if self.resolution_time is None:
            return None
        return (self.resolution_time - self.timestamp).total_seconds() / 60.0


class HourlyRecord(BaseModel):
    hour: int
    requests: int
    errors: int
    error_rate: float
    avg_response_time: float
    memory_usage_mb: float
    cpu_usage_percent: float
    stability_score: float
    alerts_raised: int


class PerformanceSample(BaseModel):
    timestamp: datetime
    elapsed_seconds: float
    response_time: float
    memory_usage_mb: float
    cpu_usage_percent: float
    network_latency_ms: float
    disk_usage_percent: float
    cache_hit_rate: float
    throughput: float
    error_rate: float
    stability_score: float


class ErrorTrendEntry(BaseModel):
    timestamp: datetime
    error_type: str
    message: str | None = None
    severity: Severity
    category: str | None = None


class MemoryLeakRecord(BaseModel):
    timestamp: datetime
    memory_usage_mb: float
    growth_rate: float
    trend: Literal["increasing", "decreasing", "stable"]
    leak_severity: int = Field(ge=0, le=4)
    gc_effectiveness: float
    heap_fragmentation: float
    object_retention: float
    samples_analyzed: int


class ChaosExperiment(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    type: str
    severity: ChaosSeverity
    duration_seconds: float
    description: str
    impact: str
    impact_level: float
    business_impact: str
    lessons_learned: str
    status: ExperimentStatus = ExperimentStatus.ACTIVE
    started_at: datetime
    started_elapsed_seconds: float
    completed_at: datetime | None = None
    recovery_time_seconds: float | None = None
    start_alert_id: str | None = None


class PerformanceBaseline(BaseModel):
    established: bool = False
    established_at: datetime | None = None
    established_elapsed_hours: float = 0.0
    response_time: float = 0.0
    memory_usage_mb: float = 0.0
    cpu_usage_percent: float = 0.0
    throughput: float = 0.0
    stability_score: float = 0.0


class DegradationAnalysis(BaseModel):
    response_time_degradation: float = 0.0
    memory_growth_rate: float = 0.0  # MB/day
    cpu_trend: float = 0.0
    throughput_decline: float = 0.0
    reliability_index: float = 100.0
    resilience_rating: float = 100.0
    mtbf_hours: float = 0.0
    mttr_minutes: float = 0.0


class BusinessMetrics(BaseModel):
    availability: float = 100.0
    sla_compliance: float = 100.0
    error_budget_remaining: float = 100.0
    customer_impact: float = 0.0
    revenue_protection: float = 100.0
    brand_reputation: float = 100.0


class HealthCheckReport(BaseModel):
    timestamp: datetime
    checks: dict[str, bool]
    failed: list[str] = Field(default_factory=list)


class RunMetrics(BaseModel):
    """Aggregate run state; mutated only under the run lock."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    errors_caught: int = 0
    errors_not_caught: int = 0
    expected_rejections: int = 0
    validation_bypasses: int = 0
    security_violations: int = 0
    timeouts: int = 0
    failure_recoveries: int = 0
    stress_tests_run: int = 0

    average_response_time: float = 0.0
    min_response_time: float | None = None
    max_response_time: float = 0.0
    p95_response_time: float = 0.0
    p99_response_time: float = 0.0
    p999_response_time: float = 0.0

    requests_per_second: float = 0.0
    error_rate: float = 0.0
    effective_error_rate: float = 0.0
    elapsed_seconds: float = 0.0
    current_target_rate: int = 0

    memory_usage_mb: float = 0.0
    cpu_usage_percent: float = 0.0
    network_latency_ms: float = 0.0
    disk_usage_percent: float = 0.0
    cache_hit_rate: float = 100.0
    thread_count: int = 0
    gc_collections: int = 0

    stability_score: float = 100.0
    health_score: float = 100.0
    circuit_breaker_state: CircuitState = CircuitState.CLOSED
    health_check_status: HealthStatus = HealthStatus.HEALTHY
    last_health_check: HealthCheckReport | None = None

    hourly_breakdown: list[HourlyRecord] = Field(default_factory=list)
    performance_trends: list[PerformanceSample] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)
    memory_leak_detection: list[MemoryLeakRecord] = Field(default_factory=list)
    chaos_experiments: list[ChaosExperiment] = Field(default_factory=list)
    error_trends: list[ErrorTrendEntry] = Field(default_factory=list)
    performance_baseline: PerformanceBaseline = Field(default_factory=PerformanceBaseline)
    degradation_analysis: DegradationAnalysis | None = None
    business_metrics: BusinessMetrics = Field(default_factory=BusinessMetrics)

    def find_alert(self, alert_id: str) -> Alert | None:
        for alert in self.alerts:
            if alert.id == alert_id:
                return alert
        return None

    def count_alerts(self, *severities: Severity) -> int:
        return sum(1 for alert in self.alerts if alert.severity in severities)


class FinalReport(BaseModel):
    generated_at: datetime
    degraded: bool = False
    executive_summary: str
    key_findings: list[str]
    performance_analysis: str
    memory_analysis: str
    stability_analysis: str
    security_analysis: str
    network_analysis: str
    chaos_engineering_results: str
    business_impact_assessment: str
    recommendations: list[str]
    risk_assessment: dict[str, str]
    long_term_trends: str
    comparison_with_baseline: str
    enterprise_readiness_score: float = Field(ge=0, le=100)
    certification_recommendations: list[str]


class RunResult(BaseModel):
    """Everything known about a run; this is the export document."""

    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    config: RunConfig
    status: RunStatus = RunStatus.IDLE
    metrics: RunMetrics = Field(default_factory=RunMetrics)
    start_time: datetime | None = None
    end_time: datetime | None = None
    failure_reason: str | None = None
    final_report: FinalReport | None = None
