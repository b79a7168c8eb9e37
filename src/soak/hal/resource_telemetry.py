"""
Resource telemetry sources.

The stability, alerting and leak-detection logic only ever sees
``ResourceSnapshot`` objects, so a run can be driven by real host metrics
(psutil), by a seeded simulation of a long-running service, or by a scripted
series in tests.
"""

import gc
import math
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

import psutil

from src.soak.constants.chaos import IMPACT_LEVELS
from src.soak.core.exceptions import TelemetryError
from src.soak.models.schemas import ResourceSnapshot
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class TelemetryContext:
    """What the harness knows about the run when it asks for a sample."""

    elapsed_hours: float = 0.0
    requests_per_second: float = 0.0
    average_response_time: float = 0.0
    active_chaos: list[tuple[str, str]] = field(default_factory=list)  # (type, severity)


class ResourceTelemetry(Protocol):
    def sample(self, context: TelemetryContext) -> ResourceSnapshot: ...


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class SimulatedTelemetry:
    """Seeded model of a service that slowly accumulates memory and disk.

    Active chaos experiments push the affected signal in proportion to
    their impact level, so experiments show up in alerting and stability.
    """

    def __init__(self, seed: int | None = None, memory_growth_mb_per_hour: float = 2.5):
        self._rng = random.Random(seed)
        self.memory_growth_mb_per_hour = memory_growth_mb_per_hour
        self._samples = 0

    def sample(self, context: TelemetryContext) -> ResourceSnapshot:
        h = context.elapsed_hours
        self._samples += 1
        phase = self._samples / 50.0

        memory = 80.0 + h * self.memory_growth_mb_per_hour + math.sin(phase) * 5.0
        memory += self._rng.uniform(-2.0, 2.0)
        cpu = 15.0 + context.requests_per_second * 1.2 + self._rng.uniform(-5.0, 5.0)
        latency = 55.0 + math.sin(phase / 2.0) * 10.0 + self._rng.uniform(0.0, 15.0)
        disk = 30.0 + h * 0.15
        cache = 88.0 - h * 0.1 + self._rng.uniform(-3.0, 3.0)

        for chaos_type, severity in context.active_chaos:
            impact = IMPACT_LEVELS.get(severity, 0.0)
            if chaos_type == "cpu_spike":
                cpu += 60.0 * impact
            elif chaos_type == "memory_pressure":
                memory += 400.0 * impact
            elif chaos_type == "network_partition":
                latency += 800.0 * impact
            elif chaos_type == "slow_dependency":
                latency += 400.0 * impact
            elif chaos_type == "disk_exhaustion":
                disk += 60.0 * impact
            elif chaos_type == "cache_miss_storm":
                cache -= 50.0 * impact
            elif chaos_type == "service_crash":
                cpu += 20.0 * impact

        return ResourceSnapshot(
            memory_usage_mb=max(0.0, memory),
            cpu_usage_percent=_clamp(cpu, 0.0, 100.0),
            network_latency_ms=max(0.0, latency),
            disk_usage_percent=_clamp(disk, 0.0, 100.0),
            cache_hit_rate=_clamp(cache, 0.0, 100.0),
            thread_count=8,
            gc_collections=self._samples // 30,
        )


class SystemTelemetry:
    """Host and process metrics via psutil.

    The operating system knows nothing about network latency to the
    service or its cache, so latency is the run's measured average
    response time and the cache hit rate comes from an optional probe.
    """

    def __init__(
        self,
        disk_path: str = "/",
        cache_hit_probe: Callable[[], float] | None = None,
    ):
        self.disk_path = disk_path
        self.cache_hit_probe = cache_hit_probe
        self._process = psutil.Process()
        # Prime the CPU counter; the first call always returns 0.0
        psutil.cpu_percent(interval=None)

    def sample(self, context: TelemetryContext) -> ResourceSnapshot:
        try:
            memory_mb = self._process.memory_info().rss / (1024 * 1024)
            cpu = psutil.cpu_percent(interval=None)
            disk = psutil.disk_usage(self.disk_path).percent
            threads = self._process.num_threads()
        except (psutil.Error, OSError) as e:
            raise TelemetryError(f"Failed to sample host metrics: {e}") from e

        cache = self.cache_hit_probe() if self.cache_hit_probe else 100.0
        return ResourceSnapshot(
            memory_usage_mb=memory_mb,
            cpu_usage_percent=cpu,
            network_latency_ms=context.average_response_time,
            disk_usage_percent=disk,
            cache_hit_rate=_clamp(cache, 0.0, 100.0),
            thread_count=threads,
            gc_collections=sum(stat["collections"] for stat in gc.get_stats()),
        )


class ScriptedTelemetry:
    """Replays a fixed list of snapshots; the last one repeats forever."""

    def __init__(self, snapshots: Iterable[ResourceSnapshot]):
        self._snapshots = list(snapshots)
        if not self._snapshots:
            raise ValueError("ScriptedTelemetry needs at least one snapshot")
        self._index = 0

    def sample(self, context: TelemetryContext) -> ResourceSnapshot:
        snapshot = self._snapshots[min(self._index, len(self._snapshots) - 1)]
        self._index += 1
        return snapshot


def create_telemetry(mode: str, seed: int | None = None) -> ResourceTelemetry:
    """Build the telemetry source named by ``HARNESS_TELEMETRY_MODE``."""
    if mode == "system":
        logger.info("Using host resource telemetry")
        return SystemTelemetry()
    if mode == "simulated":
        return SimulatedTelemetry(seed=seed)
    raise ValueError(f"Unknown telemetry mode: {mode}")
