"""Cluster-wide config and connector file routes.

Built per group, like the agent's, so ``/config`` and ``/connectors`` share
one definition.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from fleet_manager.controller.routers.common import NodeIdParam, ScopeParam, agent_request, forward
from fleet_manager.transport.requester import ApiRequesterBuilder
from fleet_manager.web import text_body


def create_router(group: str) -> APIRouter:
    router = APIRouter(prefix=f"/{group}", tags=[group])

    def _file(file: str) -> ApiRequesterBuilder:
        return agent_request(f"/{group}/{{file}}").resolve_template("file", file)

    def _prop(file: str, prop: str) -> ApiRequesterBuilder:
        return (
            agent_request(f"/{group}/{{file}}/{{prop}}")
            .resolve_template("file", file)
            .resolve_template("prop", prop)
        )

    @router.get("", status_code=207)
    def list_files(scope: ScopeParam = None, node_id: NodeIdParam = []) -> JSONResponse:  # noqa: B006
        return forward(agent_request(f"/{group}").accept("application/json"), scope, node_id)

    @router.get("/{file}", status_code=207)
    def get_file(file: str, scope: ScopeParam = None, node_id: NodeIdParam = []) -> JSONResponse:  # noqa: B006
        return forward(_file(file), scope, node_id)

    @router.post("/{file}", status_code=207)
    def replace_file(
        file: str,
        url: Annotated[str, Depends(text_body)],
        scope: ScopeParam = None,
        node_id: NodeIdParam = [],  # noqa: B006
    ) -> JSONResponse:
        return forward(_file(file).http_method("POST").entity(url), scope, node_id)

    @router.delete("/{file}", status_code=207)
    def delete_file(file: str, scope: ScopeParam = None, node_id: NodeIdParam = []) -> JSONResponse:  # noqa: B006
        return forward(_file(file).http_method("DELETE"), scope, node_id)

    @router.get("/{file}/{prop}", status_code=207)
    def get_property(
        file: str, prop: str, scope: ScopeParam = None, node_id: NodeIdParam = [],  # noqa: B006
    ) -> JSONResponse:
        return forward(_prop(file, prop), scope, node_id)

    @router.put("/{file}/{prop}", status_code=207)
    def set_property(
        file: str,
        prop: str,
        value: Annotated[str, Depends(text_body)],
        scope: ScopeParam = None,
        node_id: NodeIdParam = [],  # noqa: B006
    ) -> JSONResponse:
        return forward(_prop(file, prop).http_method("PUT").entity(value), scope, node_id)

    @router.delete("/{file}/{prop}", status_code=207)
    def delete_property(
        file: str, prop: str, scope: ScopeParam = None, node_id: NodeIdParam = [],  # noqa: B006
    ) -> JSONResponse:
        return forward(_prop(file, prop).http_method("DELETE"), scope, node_id)

    return router
