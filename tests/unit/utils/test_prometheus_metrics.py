"""Unit tests for per-run Prometheus gauges."""

import pytest
from prometheus_client import REGISTRY

from src.soak.models.schemas import RunStatus
from src.soak.utils.prometheus_metrics import publish_run_metrics, remove_run_metrics

pytestmark = pytest.mark.unit


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels)


class TestRunGauges:
    def test_publish_and_remove(self, metrics):
        metrics.total_requests = 42
        metrics.p99_response_time = 250.0

        publish_run_metrics("gauge-run", metrics, RunStatus.RUNNING)

        assert sample("soak_run_requests_total", run_id="gauge-run") == 42
        assert sample("soak_run_response_time_ms", run_id="gauge-run", statistic="p99") == 250.0
        assert sample("soak_run_status", run_id="gauge-run", status="running") == 1
        assert sample("soak_run_status", run_id="gauge-run", status="paused") == 0

        remove_run_metrics("gauge-run")
        assert sample("soak_run_requests_total", run_id="gauge-run") is None

    def test_remove_unknown_run(self):
        remove_run_metrics("never-published")
