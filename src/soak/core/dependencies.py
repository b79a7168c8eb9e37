"""
Service dependency wiring.

Builds the process-wide ``RunManager`` from configuration and hands it to
FastAPI routes through ``get_run_manager``.
"""

from src.soak.core.config import Config, get_config
from src.soak.hal.collaborator import Collaborator
from src.soak.hal.currency_service import SimulatedCurrencyService
from src.soak.hal.resource_telemetry import ResourceTelemetry, create_telemetry
from src.soak.models.schemas import RunConfig
from src.soak.services.run_manager import RunManager
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

_run_manager: RunManager | None = None


def build_run_manager(config: Config) -> RunManager:
    harness = config.harness

    def collaborator_factory(run_config: RunConfig) -> Collaborator:
        return SimulatedCurrencyService(
            latency_min_ms=harness.HARNESS_SIMULATED_LATENCY_MIN_MS,
            latency_max_ms=harness.HARNESS_SIMULATED_LATENCY_MAX_MS,
            failure_rate=harness.HARNESS_SIMULATED_FAILURE_RATE,
            seed=run_config.seed,
        )

    def telemetry_factory(run_config: RunConfig) -> ResourceTelemetry:
        return create_telemetry(harness.HARNESS_TELEMETRY_MODE, seed=run_config.seed)

    logger.info(
        f"Building run manager: telemetry={harness.HARNESS_TELEMETRY_MODE}, "
        f"max runs={harness.HARNESS_MAX_CONCURRENT_RUNS}"
    )
    return RunManager(
        collaborator_factory=collaborator_factory,
        telemetry_factory=telemetry_factory,
        max_concurrent_runs=harness.HARNESS_MAX_CONCURRENT_RUNS,
        time_scale=harness.HARNESS_TIME_SCALE,
        export_dir=harness.HARNESS_EXPORT_DIR,
        shutdown_timeout_seconds=harness.HARNESS_SHUTDOWN_TIMEOUT_S,
    )


def get_run_manager() -> RunManager:
    """Get or create the global run manager instance."""
    global _run_manager
    if _run_manager is None:
        _run_manager = build_run_manager(get_config())
    return _run_manager


def reset_run_manager() -> None:
    """Forget the global instance; the next ``get_run_manager`` rebuilds it."""
    global _run_manager
    _run_manager = None
