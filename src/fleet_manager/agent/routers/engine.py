"""Engine control endpoints: start, stop, restart, status."""

from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse

from fleet_manager.agent.lifecycle import LifecycleService
from fleet_manager.errors import ClientInputError
from fleet_manager.models import EngineStatus, StopType

router = APIRouter(prefix="/engine", tags=["engine"])

_service: LifecycleService | None = None


def init_router(service: LifecycleService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> LifecycleService:
    assert _service is not None, "LifecycleService not initialized"
    return _service


@router.post("/start", response_class=PlainTextResponse, status_code=202)
def start_engine() -> PlainTextResponse:
    result = _svc().start()
    return PlainTextResponse(result.message, status_code=result.status_code)


@router.post("/stop", response_class=PlainTextResponse)
def stop_engine(
    stop_type: str = Query(StopType.GRACEFUL.value, alias="stopType"),
) -> PlainTextResponse:
    try:
        parsed = StopType(stop_type.strip().upper())
    except ValueError as e:
        raise ClientInputError(f"Invalid stop type: {stop_type}") from e
    result = _svc().stop(parsed)
    return PlainTextResponse(result.message, status_code=result.status_code)


@router.post("/restart", response_class=PlainTextResponse, status_code=202)
def restart_engine() -> PlainTextResponse:
    result = _svc().restart()
    return PlainTextResponse(result.message, status_code=result.status_code)


@router.get("/status", response_model=EngineStatus, response_model_exclude_none=True)
def engine_status() -> EngineStatus:
    return _svc().status()
