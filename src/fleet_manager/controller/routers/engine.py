"""Cluster-wide engine control: forwards to each agent's ``/engine``."""

from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from fleet_manager.controller.routers.common import NodeIdParam, ScopeParam, agent_request, forward
from fleet_manager.models import StopType

router = APIRouter(prefix="/engine", tags=["engine"])


@router.post("/start", status_code=207)
def start_engine(scope: ScopeParam = None, node_id: NodeIdParam = []) -> JSONResponse:  # noqa: B006
    return forward(agent_request("/engine/start").http_method("POST"), scope, node_id)


@router.post("/stop", status_code=207)
def stop_engine(
    scope: ScopeParam = None,
    node_id: NodeIdParam = [],  # noqa: B006
    stop_type: str = Query(StopType.GRACEFUL.value, alias="stopType"),
) -> JSONResponse:
    builder = agent_request("/engine/stop").http_method("POST").query_param("stopType", stop_type)
    return forward(builder, scope, node_id)


@router.post("/restart", status_code=207)
def restart_engine(scope: ScopeParam = None, node_id: NodeIdParam = []) -> JSONResponse:  # noqa: B006
    return forward(agent_request("/engine/restart").http_method("POST"), scope, node_id)


@router.get("/status", status_code=207)
def engine_status(scope: ScopeParam = None, node_id: NodeIdParam = []) -> JSONResponse:  # noqa: B006
    return forward(agent_request("/engine/status").accept("application/json"), scope, node_id)
