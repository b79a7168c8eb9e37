"""
Soak run control API routes.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from pydantic import BaseModel, ValidationError

from src.soak.core.config import get_config
from src.soak.core.dependencies import get_run_manager
from src.soak.core.exceptions import (
    AlertNotFoundError,
    AlertResolutionError,
    RunCapacityError,
    RunNotFoundError,
    RunStateError,
    SoakHarnessError,
)
from src.soak.models.schemas import Alert, RunConfig, RunResult, RunStatus, Severity
from src.soak.services.run_manager import RunManager
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/runs", tags=["runs"])

_STATUS_BY_ERROR: dict[type[SoakHarnessError], int] = {
    RunNotFoundError: status.HTTP_404_NOT_FOUND,
    AlertNotFoundError: status.HTTP_404_NOT_FOUND,
    RunStateError: status.HTTP_409_CONFLICT,
    AlertResolutionError: status.HTTP_409_CONFLICT,
    RunCapacityError: status.HTTP_429_TOO_MANY_REQUESTS,
}


def _http_error(error: SoakHarnessError) -> HTTPException:
    code = _STATUS_BY_ERROR.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if code >= 500:
        logger.error(f"Run operation failed: {error}")
    return HTTPException(status_code=code, detail=str(error))


class RunStartResponse(BaseModel):
    run_id: str
    status: RunStatus


class RunSummary(BaseModel):
    run_id: str
    name: str
    status: RunStatus
    start_time: datetime | None
    end_time: datetime | None
    elapsed_seconds: float
    total_requests: int
    effective_error_rate: float
    stability_score: float
    open_alerts: int
    failure_reason: str | None

    @classmethod
    def from_result(cls, result: RunResult) -> "RunSummary":
        m = result.metrics
        return cls(
            run_id=result.run_id,
            name=result.config.name,
            status=result.status,
            start_time=result.start_time,
            end_time=result.end_time,
            elapsed_seconds=m.elapsed_seconds,
            total_requests=m.total_requests,
            effective_error_rate=m.effective_error_rate,
            stability_score=m.stability_score,
            open_alerts=sum(1 for a in m.alerts if not a.resolved),
            failure_reason=result.failure_reason,
        )


class ControlResponse(BaseModel):
    run_id: str
    status: RunStatus
    changed: bool


def parse_run_config(payload: dict[str, Any]) -> RunConfig:
    """Validate a submitted run configuration, filling service-level defaults."""
    harness = get_config().harness
    data = {"collaborator_timeout_seconds": harness.HARNESS_COLLABORATOR_TIMEOUT_S, **payload}
    try:
        return RunConfig.model_validate(data)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        ) from e


@router.post("", response_model=RunStartResponse, status_code=status.HTTP_201_CREATED)
async def start_run(
    payload: dict[str, Any] = Body(default_factory=dict),
    manager: RunManager = Depends(get_run_manager),
) -> RunStartResponse:
    """Start a new soak run.

    Args:
        payload: ``RunConfig`` fields; omitted fields take their defaults

    Returns:
        The new run id and its status
    """
    config = parse_run_config(payload)
    try:
        run_id = await manager.start_run(config)
        return RunStartResponse(run_id=run_id, status=manager.get_run(run_id).status)
    except HTTPException:
        raise
    except SoakHarnessError as e:
        raise _http_error(e) from e


@router.get("", response_model=list[RunSummary])
async def list_runs(manager: RunManager = Depends(get_run_manager)) -> list[RunSummary]:
    return [RunSummary.from_result(r) for r in manager.list_runs()]


@router.get("/{run_id}", response_model=RunResult)
async def get_run(run_id: str, manager: RunManager = Depends(get_run_manager)) -> RunResult:
    try:
        return manager.get_run(run_id)
    except SoakHarnessError as e:
        raise _http_error(e) from e


async def _control(manager: RunManager, run_id: str, action: str) -> ControlResponse:
    try:
        if action == "pause":
            changed = await manager.pause_run(run_id)
        elif action == "resume":
            changed = await manager.resume_run(run_id)
        else:
            await manager.stop_run(run_id)
            changed = True
        logger.info(f"{action} requested for run {run_id} (changed={changed})")
        return ControlResponse(
            run_id=run_id, status=manager.get_run(run_id).status, changed=changed
        )
    except SoakHarnessError as e:
        raise _http_error(e) from e


@router.post("/{run_id}/pause", response_model=ControlResponse)
async def pause_run(run_id: str, manager: RunManager = Depends(get_run_manager)) -> ControlResponse:
    """Pause after the in-flight batch; a no-op unless the run is running."""
    return await _control(manager, run_id, "pause")


@router.post("/{run_id}/resume", response_model=ControlResponse)
async def resume_run(
    run_id: str, manager: RunManager = Depends(get_run_manager)
) -> ControlResponse:
    """Resume a paused run; a no-op unless the run is paused."""
    return await _control(manager, run_id, "resume")


@router.post("/{run_id}/stop", response_model=ControlResponse)
async def stop_run(run_id: str, manager: RunManager = Depends(get_run_manager)) -> ControlResponse:
    """Cancel the run and wait for it to finalise."""
    return await _control(manager, run_id, "stop")


@router.get("/{run_id}/export")
async def export_run(run_id: str, manager: RunManager = Depends(get_run_manager)) -> Response:
    """Full ``RunResult`` document (config, metrics, final report) as JSON."""
    try:
        document = await manager.export_run(run_id)
    except SoakHarnessError as e:
        raise _http_error(e) from e
    return Response(
        content=document,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="soak_{run_id}.json"'},
    )


@router.get("/{run_id}/alerts", response_model=list[Alert])
async def list_alerts(
    run_id: str,
    unresolved_only: bool = False,
    severity: Severity | None = None,
    manager: RunManager = Depends(get_run_manager),
) -> list[Alert]:
    try:
        alerts = manager.get_run(run_id).metrics.alerts
    except SoakHarnessError as e:
        raise _http_error(e) from e
    if unresolved_only:
        alerts = [a for a in alerts if not a.resolved]
    if severity is not None:
        alerts = [a for a in alerts if a.severity == severity]
    return alerts


@router.post("/{run_id}/alerts/{alert_id}/resolve", response_model=Alert)
async def resolve_alert(
    run_id: str, alert_id: str, manager: RunManager = Depends(get_run_manager)
) -> Alert:
    """Operator resolution; resolving an alert twice is a conflict."""
    try:
        return await manager.resolve_alert(run_id, alert_id)
    except SoakHarnessError as e:
        raise _http_error(e) from e
