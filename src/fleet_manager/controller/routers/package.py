"""Cluster-wide package lifecycle: forwards to each agent's ``/package``."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from fleet_manager.controller.routers.common import NodeIdParam, ScopeParam, agent_request, forward
from fleet_manager.web import text_body

router = APIRouter(prefix="/package", tags=["package"])


@router.put("", status_code=207)
def install_package(
    url: Annotated[str, Depends(text_body)],
    scope: ScopeParam = None,
    node_id: NodeIdParam = [],  # noqa: B006
    check_dependencies: bool = Query(True, alias="checkDependencies"),
) -> JSONResponse:
    builder = (
        agent_request("/package")
        .http_method("PUT")
        .query_param("checkDependencies", check_dependencies)
        .entity(url)
    )
    return forward(builder, scope, node_id)


@router.post("", status_code=207)
def upgrade_package(
    url: Annotated[str, Depends(text_body)],
    scope: ScopeParam = None,
    node_id: NodeIdParam = [],  # noqa: B006
    check_dependencies: bool = Query(True, alias="checkDependencies"),
    preserve_config: bool = Query(True, alias="preserveConfig"),
    force_upgrade: bool = Query(False, alias="forceUpgrade"),
) -> JSONResponse:
    builder = (
        agent_request("/package")
        .http_method("POST")
        .query_param("checkDependencies", check_dependencies)
        .query_param("preserveConfig", preserve_config)
        .query_param("forceUpgrade", force_upgrade)
        .entity(url)
    )
    return forward(builder, scope, node_id)


@router.delete("", status_code=207)
def uninstall_package(
    scope: ScopeParam = None,
    node_id: NodeIdParam = [],  # noqa: B006
    check_dependencies: bool = Query(True, alias="checkDependencies"),
    force_uninstall: bool = Query(False, alias="forceUninstall"),
) -> JSONResponse:
    builder = (
        agent_request("/package")
        .http_method("DELETE")
        .query_param("checkDependencies", check_dependencies)
        .query_param("forceUninstall", force_uninstall)
    )
    return forward(builder, scope, node_id)
