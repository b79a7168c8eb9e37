"""
Health check endpoint for the harness service.
"""

import time
from datetime import UTC, datetime
from typing import Any

import psutil
from fastapi import APIRouter, Depends

from src.soak.core.dependencies import get_run_manager
from src.soak.models.schemas import RunStatus
from src.soak.services.run_manager import RunManager

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(manager: RunManager = Depends(get_run_manager)) -> dict[str, Any]:
    """
    Service health and host resource usage.

    Returns:
        Run manager state, run counts by status and host metrics.
    """
    cpu_percent = psutil.cpu_percent(interval=None)
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage("/")

    runs_by_status = {s.value: 0 for s in RunStatus}
    for result in manager.list_runs():
        runs_by_status[result.status.value] += 1

    health = "healthy"
    if cpu_percent > 90 or memory.percent > 90:
        health = "degraded"

    return {
        "status": health,
        "timestamp": datetime.now(UTC).isoformat(),
        "service": manager.get_status(),
        "runs": {
            "active": manager.active_run_count(),
            "capacity": manager.max_concurrent_runs,
            "by_status": runs_by_status,
        },
        "system": {
            "cpu_percent": cpu_percent,
            "memory_percent": memory.percent,
            "disk_percent": disk.percent,
            "uptime": int(time.time() - psutil.boot_time()),
        },
    }
