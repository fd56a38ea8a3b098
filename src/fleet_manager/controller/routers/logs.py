"""Cluster-wide log routes: forwards to each agent's ``/logs``."""

from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from fleet_manager.controller.routers.common import NodeIdParam, ScopeParam, agent_request, forward
from fleet_manager.logs.handler import ALL_LEVELS

router = APIRouter(prefix="/logs", tags=["logs"])


@router.get("", status_code=207)
def list_logs(scope: ScopeParam = None, node_id: NodeIdParam = []) -> JSONResponse:  # noqa: B006
    return forward(agent_request("/logs").accept("application/json"), scope, node_id)


@router.get("/{file}", status_code=207)
def get_log(
    file: str,
    scope: ScopeParam = None,
    node_id: NodeIdParam = [],  # noqa: B006
    from_date: str | None = Query(None, alias="from"),
    to_date: str | None = Query(None, alias="to"),
    level: str = Query(ALL_LEVELS),
    n: int | None = Query(None, ge=0),
) -> JSONResponse:
    builder = (
        agent_request("/logs/{file}")
        .resolve_template("file", file)
        .accept("application/json")
        .query_param("level", level)
    )
    if from_date is not None:
        builder.query_param("from", from_date)
    if to_date is not None:
        builder.query_param("to", to_date)
    if n is not None:
        builder.query_param("n", n)
    return forward(builder, scope, node_id)


@router.delete("/{file}", status_code=207)
def delete_log(
    file: str,
    scope: ScopeParam = None,
    node_id: NodeIdParam = [],  # noqa: B006
    to_date: str | None = Query(None, alias="to"),
) -> JSONResponse:
    builder = agent_request("/logs/{file}").resolve_template("file", file).http_method("DELETE")
    if to_date is not None:
        builder.query_param("to", to_date)
    return forward(builder, scope, node_id)
