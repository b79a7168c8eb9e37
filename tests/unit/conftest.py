"""
Unit test specific configuration and fixtures.
Unit tests should be fast (<100ms) and have no external dependencies.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

import pytest

from src.soak.hal.mock_collaborator import FlakyCollaborator
from src.soak.models.schemas import RequestOutcome, Severity


@pytest.fixture(autouse=True)
def fast_test_settings(monkeypatch):
    """Auto-apply settings for fast unit test execution."""
    monkeypatch.setenv("SOAK_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("SOAK_LOG_ENABLE_FILE", "false")


@pytest.fixture
def reliable_collaborator() -> FlakyCollaborator:
    return FlakyCollaborator(failure_rate=0.0)


@pytest.fixture
def make_outcome(t0) -> Callable[..., RequestOutcome]:
    """Factory for request outcomes; successes unless told otherwise."""
    counter = {"n": 0}

    def _make(
        success: bool = True,
        response_time_ms: float = 100.0,
        error_type: str | None = None,
        expected_rejection: bool = False,
        category: str | None = None,
        timestamp: datetime | None = None,
        **extra,
    ) -> RequestOutcome:
        counter["n"] += 1
        kind = extra.pop("kind", "adversarial" if expected_rejection else "valid")
        severity = extra.pop("severity", Severity.MEDIUM)
        return RequestOutcome(
            timestamp=timestamp or t0 + timedelta(seconds=counter["n"]),
            success=success,
            response_time_ms=response_time_ms,
            kind=kind,
            error_type=error_type,
            error_message=None if success else "failed",
            severity=None if success else severity,
            category=category,
            expected_rejection=expected_rejection,
            **extra,
        )

    return _make
