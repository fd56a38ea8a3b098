"""Shared pieces of the controller's forwarding routers.

Every controller endpoint mirrors an agent endpoint: it builds an
:class:`ApiRequester` for the agent route, hands it to the dispatcher with
the caller's ``scope``/``nodeId`` selector, and returns the aggregate as a
207 JSON body.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Query
from fastapi.responses import JSONResponse

from fleet_manager.controller.dispatcher import RequestDispatcher
from fleet_manager.transport.requester import ApiRequester, ApiRequesterBuilder

ScopeParam = Annotated[str | None, Query(description="CLUSTER, WORKERS or COORDINATOR")]
NodeIdParam = Annotated[list[str], Query(alias="nodeId", description="Target node id (repeatable)")]

_dispatcher: RequestDispatcher | None = None
_timeout: float = 30.0


def init_forwarding(dispatcher: RequestDispatcher, timeout: float = 30.0) -> None:
    global _dispatcher, _timeout  # noqa: PLW0603
    _dispatcher = dispatcher
    _timeout = timeout


def _disp() -> RequestDispatcher:
    assert _dispatcher is not None, "RequestDispatcher not initialized"
    return _dispatcher


def agent_request(path: str) -> ApiRequesterBuilder:
    """Builder for an agent route, with the configured per-node timeout."""
    return ApiRequester.builder(path).timeout(_timeout)


def forward(
    builder: ApiRequesterBuilder, scope: str | None, node_ids: list[str],
) -> JSONResponse:
    aggregate = _disp().forward_request(scope, builder.build(), node_ids)
    return JSONResponse(aggregate.to_body(), status_code=aggregate.status_code)
