#!/usr/bin/env python3
"""Headless soak run against the simulated currency service.

Runs one soak to completion (or until Ctrl+C), prints the final report
summary and writes the full JSON export.

Example:
    python scripts/run_soak.py --duration-hours 2 --time-scale 600 -o run.json
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any

import yaml

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.soak.core.config import get_config  # noqa: E402
from src.soak.hal.collaborator import Collaborator  # noqa: E402
from src.soak.hal.currency_service import SimulatedCurrencyService  # noqa: E402
from src.soak.hal.mock_collaborator import FlakyCollaborator  # noqa: E402
from src.soak.hal.resource_telemetry import create_telemetry  # noqa: E402
from src.soak.models.schemas import RunConfig, RunStatus  # noqa: E402
from src.soak.services.run_manager import RunManager  # noqa: E402
from src.soak.utils.logging import setup_logging  # noqa: E402


def build_run_config(args: argparse.Namespace) -> RunConfig:
    data: dict[str, Any] = {}
    if args.config_file:
        with open(args.config_file) as f:
            data = yaml.safe_load(f) or {}
    overrides = {
        "name": args.name,
        "duration_hours": args.duration_hours,
        "base_request_rate": args.rate,
        "concurrency": args.concurrency,
        "seed": args.seed,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    return RunConfig.model_validate(data)


def build_manager(args: argparse.Namespace) -> RunManager:
    harness = get_config().harness

    def collaborator_factory(config: RunConfig) -> Collaborator:
        if args.collaborator == "flaky":
            rate = args.failure_rate if args.failure_rate is not None else 0.01
            return FlakyCollaborator(failure_rate=rate, seed=config.seed or 0)
        return SimulatedCurrencyService(
            latency_min_ms=harness.HARNESS_SIMULATED_LATENCY_MIN_MS,
            latency_max_ms=harness.HARNESS_SIMULATED_LATENCY_MAX_MS,
            failure_rate=(
                args.failure_rate
                if args.failure_rate is not None
                else harness.HARNESS_SIMULATED_FAILURE_RATE
            ),
            seed=config.seed,
        )

    return RunManager(
        collaborator_factory=collaborator_factory,
        telemetry_factory=lambda config: create_telemetry(args.telemetry, seed=config.seed),
        max_concurrent_runs=1,
        time_scale=args.time_scale,
        export_dir=harness.HARNESS_EXPORT_DIR,
        shutdown_timeout_seconds=harness.HARNESS_SHUTDOWN_TIMEOUT_S,
    )


async def main() -> int:
    parser = argparse.ArgumentParser(description="Run a headless soak test")
    parser.add_argument("--config-file", type=str, help="YAML or JSON file with RunConfig fields")
    parser.add_argument("--name", type=str, help="Run name")
    parser.add_argument("--duration-hours", type=float, help="Planned run duration in hours")
    parser.add_argument("--rate", type=int, help="Base request rate (req/s)")
    parser.add_argument("--concurrency", type=int, help="Maximum requests in flight")
    parser.add_argument("--seed", type=int, help="Seed for the scenario mix and simulations")
    parser.add_argument(
        "--time-scale",
        type=float,
        default=1.0,
        help="Run seconds per real second (default: 1, real time)",
    )
    parser.add_argument(
        "--collaborator",
        choices=["simulated", "flaky"],
        default="simulated",
        help="System under test (default: simulated currency service)",
    )
    parser.add_argument(
        "--failure-rate", type=float, help="Injected execute failure probability"
    )
    parser.add_argument(
        "--telemetry",
        choices=["simulated", "system"],
        default="simulated",
        help="Resource telemetry source (default: simulated)",
    )
    parser.add_argument("-o", "--output", type=str, help="Export file (default: export dir)")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level")
    args = parser.parse_args()

    setup_logging(log_level=args.log_level, enable_file=False)

    try:
        run_config = build_run_config(args)
    except ValueError as e:
        print(f"Invalid run configuration:\n{e}", file=sys.stderr)
        return 2

    manager = build_manager(args)
    await manager.start()
    run_id = await manager.start_run(run_config)
    print(f"Started run {run_id}: {run_config.duration_hours:g}h at x{args.time_scale:g}")

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(
            sig, lambda: asyncio.ensure_future(manager.stop_run(run_id, wait=False))
        )

    result = await manager.wait_for_run(run_id)
    output = await manager.export_run_to_file(run_id, args.output)
    await manager.stop()

    print(f"\n=== Run {result.status.value} ===")
    if result.final_report is not None:
        report = result.final_report
        print(report.executive_summary)
        print("\nRecommendations:")
        for recommendation in report.recommendations:
            print(f"  - {recommendation}")
        print(f"\nRisk: {report.risk_assessment}")
    if result.failure_reason:
        print(f"Failure: {result.failure_reason}")
    print(f"\nExport written to {output}")
    return 1 if result.status == RunStatus.FAILED else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
