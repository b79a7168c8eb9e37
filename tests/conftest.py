"""
Shared pytest fixtures for the soak harness test suite.
These fixtures are available to all test files automatically.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from src.soak.models.schemas import ResourceSnapshot, RunConfig, RunMetrics


def pytest_configure(config):
    """Register custom pytest markers for test categorization."""
    # Test category markers
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test (<100ms, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (real event loop, <10s)"
    )
    config.addinivalue_line("markers", "property: mark test as property-based test (hypothesis)")

    # Speed markers
    config.addinivalue_line("markers", "slow: mark test as slow (>1s execution time)")
    config.addinivalue_line("markers", "serial: mark test to run serially (not parallelizable)")


def pytest_collection_modifyitems(config, items):
    """Add markers to test items based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
            # Runs are compressed with a time scale; anything slower is a hang
            item.add_marker(pytest.mark.timeout(30))
        elif "property" in path:
            item.add_marker(pytest.mark.property)


@pytest.fixture
def t0() -> datetime:
    """A Wednesday at noon, outside night and weekend modifiers."""
    return datetime(2024, 1, 3, 12, 0, tzinfo=UTC)


@pytest.fixture
def make_config() -> Callable[..., RunConfig]:
    """Factory for short, seeded run configurations."""

    def _make(**overrides: Any) -> RunConfig:
        data: dict[str, Any] = {
            "name": "test-run",
            "duration_hours": 1,
            "base_request_rate": 10,
            "concurrency": 5,
            "error_rate_threshold": 2.0,
            "seed": 42,
        }
        data.update(overrides)
        return RunConfig.model_validate(data)

    return _make


@pytest.fixture
def run_config(make_config) -> RunConfig:
    return make_config()


@pytest.fixture
def make_snapshot() -> Callable[..., ResourceSnapshot]:
    """Factory for a calm resource reading with selective overrides."""

    def _make(**overrides: Any) -> ResourceSnapshot:
        values: dict[str, Any] = {
            "memory_usage_mb": 100.0,
            "cpu_usage_percent": 20.0,
            "network_latency_ms": 50.0,
            "disk_usage_percent": 30.0,
            "cache_hit_rate": 90.0,
            "thread_count": 8,
            "gc_collections": 0,
        }
        values.update(overrides)
        return ResourceSnapshot(**values)

    return _make


@pytest.fixture
def metrics() -> RunMetrics:
    return RunMetrics()
