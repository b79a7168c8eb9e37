"""
Run Manager.

Registry of soak runs keyed by run id and the control surface used by the
HTTP API and the CLI. Each run gets its own controller, engine, clock and
collaborator; nothing is shared between runs except the registry.
"""

import asyncio
import random
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from src.soak.core.base_service import BaseService
from src.soak.core.exceptions import (
    AlertNotFoundError,
    RunCapacityError,
    RunNotFoundError,
)
from src.soak.hal.collaborator import Collaborator
from src.soak.hal.resource_telemetry import ResourceTelemetry
from src.soak.models.schemas import Alert, RunConfig, RunResult, utc_now
from src.soak.services.run_controller import SoakRunController
from src.soak.services.run_engine import RunEngine
from src.soak.utils.async_io_helpers import AsyncFileIO
from src.soak.utils.logging import get_logger
from src.soak.utils.prometheus_metrics import remove_run_metrics
from src.soak.utils.run_clock import RunClock

logger = get_logger(__name__)

CollaboratorFactory = Callable[[RunConfig], Collaborator]
TelemetryFactory = Callable[[RunConfig], ResourceTelemetry]


class RunManager(BaseService):
    """Starts, controls and exports soak runs."""

    def __init__(
        self,
        collaborator_factory: CollaboratorFactory,
        telemetry_factory: TelemetryFactory,
        max_concurrent_runs: int = 4,
        time_scale: float = 1.0,
        export_dir: Path | str = "data/exports",
        shutdown_timeout_seconds: float = 30.0,
    ):
        super().__init__("run_manager")
        self.collaborator_factory = collaborator_factory
        self.telemetry_factory = telemetry_factory
        self.max_concurrent_runs = max_concurrent_runs
        self.time_scale = time_scale
        self.export_dir = Path(export_dir)
        self.shutdown_timeout_seconds = shutdown_timeout_seconds
        self._runs: dict[str, SoakRunController] = {}
        self._lock = asyncio.Lock()

    async def start_service(self) -> None:
        logger.info(
            f"Run manager ready: up to {self.max_concurrent_runs} concurrent runs, "
            f"time scale x{self.time_scale:g}"
        )

    async def stop_service(self) -> None:
        """Stop every active run and wait for each to finalise."""
        active = [c for c in self._runs.values() if not c.status.is_terminal]
        for controller in active:
            await controller.stop()
        if active:
            await asyncio.wait_for(
                asyncio.gather(*(c.wait() for c in active)),
                self.shutdown_timeout_seconds,
            )
        logger.info(f"Stopped {len(active)} active run(s)")

    # Registry -------------------------------------------------------------

    def _controller(self, run_id: str) -> SoakRunController:
        controller = self._runs.get(run_id)
        if controller is None:
            raise RunNotFoundError(f"Run {run_id} not found")
        return controller

    def active_run_count(self) -> int:
        return sum(1 for c in self._runs.values() if not c.status.is_terminal)

    def get_run(self, run_id: str) -> RunResult:
        return self._controller(run_id).result

    def list_runs(self) -> list[RunResult]:
        return [c.result for c in self._runs.values()]

    async def forget_run(self, run_id: str) -> None:
        """Remove a finished run from the registry."""
        async with self._lock:
            controller = self._controller(run_id)
            if not controller.status.is_terminal:
                await controller.stop()
                await controller.wait(self.shutdown_timeout_seconds)
            del self._runs[run_id]
        remove_run_metrics(run_id)

    # Control surface ------------------------------------------------------

    def create_controller(
        self, config: RunConfig, start_wall: datetime | None = None
    ) -> SoakRunController:
        result = RunResult(config=config)
        engine = RunEngine(
            result,
            collaborator=self.collaborator_factory(config),
            telemetry=self.telemetry_factory(config),
            rng=random.Random(config.seed),
        )
        clock = RunClock(start_wall=start_wall, time_scale=self.time_scale)
        return SoakRunController(engine, clock, self.shutdown_timeout_seconds)

    async def start_run(self, config: RunConfig) -> str:
        async with self._lock:
            if self.active_run_count() >= self.max_concurrent_runs:
                raise RunCapacityError(
                    f"Maximum of {self.max_concurrent_runs} concurrent runs reached"
                )
            controller = self.create_controller(config)
            self._runs[controller.run_id] = controller
        await controller.start()
        logger.info(f"Started run {controller.run_id} ({config.name})")
        return controller.run_id

    async def pause_run(self, run_id: str) -> bool:
        return await self._controller(run_id).pause()

    async def resume_run(self, run_id: str) -> bool:
        return await self._controller(run_id).resume()

    async def stop_run(self, run_id: str, wait: bool = True) -> RunResult:
        """Stop a run; returns its current status if it is still finalising after the timeout."""
        controller = self._controller(run_id)
        await controller.stop()
        if wait:
            try:
                await controller.wait(self.shutdown_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Run {run_id} still finalising after {self.shutdown_timeout_seconds}s; "
                    f"status {controller.result.status.value}"
                )
        return controller.result

    async def wait_for_run(self, run_id: str, timeout: float | None = None) -> RunResult:
        return await self._controller(run_id).wait(timeout)

    async def resolve_alert(self, run_id: str, alert_id: str, at: datetime | None = None) -> Alert:
        """Operator resolution of an open alert."""
        controller = self._controller(run_id)
        async with controller.lock:
            alert = controller.result.metrics.find_alert(alert_id)
            if alert is None:
                raise AlertNotFoundError(f"Alert {alert_id} not found in run {run_id}")
            alert.resolve(at or controller.clock.now())
        logger.info(f"Alert {alert_id} resolved by operator in run {run_id}")
        return alert

    async def export_run(self, run_id: str) -> str:
        """Serialized ``RunResult`` as JSON, taken under the run lock."""
        controller = self._controller(run_id)
        async with controller.lock:
            return controller.result.model_dump_json(indent=2)

    async def export_run_to_file(self, run_id: str, path: Path | str | None = None) -> Path:
        document = await self.export_run(run_id)
        if path is None:
            stamp = utc_now().strftime("%Y%m%dT%H%M%SZ")
            path = self.export_dir / f"soak_{run_id}_{stamp}.json"
        target = await AsyncFileIO.write_text(path, document)
        logger.info(f"Exported run {run_id} to {target}")
        return target


def load_result(document: str) -> RunResult:
    """Parse an exported run document."""
    return RunResult.model_validate_json(document)
