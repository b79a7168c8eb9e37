"""Hypothesis strategies for request outcomes, resources and run configs."""

from datetime import UTC, datetime, timedelta

import hypothesis.strategies as st

from src.soak.models.schemas import RequestOutcome, ResourceSnapshot, RunConfig

EPOCH = datetime(2024, 1, 1, tzinfo=UTC)

response_times = st.floats(min_value=0.0, max_value=60_000.0, allow_nan=False)
percentages = st.floats(min_value=0.0, max_value=100.0, allow_nan=False)
wall_clock = st.datetimes(
    min_value=datetime(2024, 1, 1), max_value=datetime(2024, 12, 31), timezones=st.just(UTC)
)
error_types = st.sampled_from(["type", "range", "format", "security", "server", "timeout"])


@st.composite
def request_outcomes(draw) -> RequestOutcome:
    """Outcome with consistent flags: expected rejections are adversarial failures."""
    success = draw(st.booleans())
    kind = draw(st.sampled_from(["valid", "adversarial"]))
    expected = not success and kind == "adversarial" and draw(st.booleans())
    return RequestOutcome(
        timestamp=EPOCH + timedelta(seconds=draw(st.integers(0, 86_400))),
        success=success,
        response_time_ms=draw(response_times),
        kind=kind,
        error_type=None if success else draw(st.one_of(st.none(), error_types)),
        expected_rejection=expected,
        validation_bypass=success and kind == "adversarial",
    )


@st.composite
def resource_snapshots(draw) -> ResourceSnapshot:
    return ResourceSnapshot(
        memory_usage_mb=draw(st.floats(min_value=0.0, max_value=8192.0)),
        cpu_usage_percent=draw(percentages),
        network_latency_ms=draw(st.floats(min_value=0.0, max_value=5000.0)),
        disk_usage_percent=draw(percentages),
        cache_hit_rate=draw(percentages),
        thread_count=draw(st.integers(1, 512)),
        gc_collections=draw(st.integers(0, 10_000)),
    )


@st.composite
def run_configs(draw) -> RunConfig:
    return RunConfig(
        duration_hours=draw(st.floats(min_value=1.0, max_value=240.0)),
        base_request_rate=draw(st.integers(1, 500)),
        concurrency=draw(st.integers(1, 50)),
        load_variation=draw(st.booleans()),
        night_mode_reduction=draw(percentages),
        weekend_mode_reduction=draw(percentages),
        seed=draw(st.integers(0, 2**32)),
    )
