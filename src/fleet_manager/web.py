"""FastAPI plumbing shared by the agent and controller apps."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from fleet_manager.errors import FleetManagerError

logger = logging.getLogger(__name__)


async def text_body(request: Request) -> str:
    """Dependency: the raw request body decoded as UTF-8 text."""
    return (await request.body()).decode("utf-8", errors="replace")


def install_error_handlers(app: FastAPI) -> None:
    """Map :class:`FleetManagerError` and request validation failures to text responses."""

    @app.exception_handler(FleetManagerError)
    async def _fleet_manager_error(request: Request, exc: FleetManagerError) -> PlainTextResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        )
        return PlainTextResponse(f"Invalid request: {details}", status_code=400)
