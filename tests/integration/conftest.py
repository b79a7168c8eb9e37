"""
Integration test fixtures.
Runs are driven by real controllers and clocks; compressed time keeps
hour-long runs well inside the per-test timeout.
"""

import pytest

from src.soak.hal.mock_collaborator import FlakyCollaborator
from src.soak.hal.resource_telemetry import ScriptedTelemetry
from src.soak.services.run_manager import RunManager


@pytest.fixture
def quiet_run_config(make_config):
    return make_config(load_variation=False, chaos_engineering=False, stress_test_intervals=False)


@pytest.fixture
def make_manager(tmp_path, make_snapshot):
    """Build a ``RunManager`` with reliable collaborators and steady telemetry."""

    def _make(time_scale: float = 1.0, **kwargs) -> RunManager:
        kwargs.setdefault("collaborator_factory", lambda config: FlakyCollaborator(0.0))
        kwargs.setdefault("telemetry_factory", lambda config: ScriptedTelemetry([make_snapshot()]))
        kwargs.setdefault("export_dir", tmp_path / "exports")
        kwargs.setdefault("shutdown_timeout_seconds", 5.0)
        return RunManager(time_scale=time_scale, **kwargs)

    return _make
