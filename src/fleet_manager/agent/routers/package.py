"""Package lifecycle endpoints: install, upgrade, uninstall."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from fleet_manager.agent.lifecycle import LifecycleService
from fleet_manager.web import text_body

router = APIRouter(prefix="/package", tags=["package"])

_service: LifecycleService | None = None


def init_router(service: LifecycleService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> LifecycleService:
    assert _service is not None, "LifecycleService not initialized"
    return _service


@router.put("", response_class=PlainTextResponse, status_code=202)
def install_package(
    url: Annotated[str, Depends(text_body)],
    check_dependencies: bool = Query(True, alias="checkDependencies"),
) -> PlainTextResponse:
    result = _svc().install(url, check_dependencies=check_dependencies)
    return PlainTextResponse(result.message, status_code=result.status_code)


@router.post("", response_class=PlainTextResponse, status_code=202)
def upgrade_package(
    url: Annotated[str, Depends(text_body)],
    check_dependencies: bool = Query(True, alias="checkDependencies"),
    preserve_config: bool = Query(True, alias="preserveConfig"),
    force_upgrade: bool = Query(False, alias="forceUpgrade"),
) -> PlainTextResponse:
    result = _svc().upgrade(
        url,
        check_dependencies=check_dependencies,
        preserve_config=preserve_config,
        force=force_upgrade,
    )
    return PlainTextResponse(result.message, status_code=result.status_code)


@router.delete("", response_class=PlainTextResponse, status_code=202)
def uninstall_package(
    check_dependencies: bool = Query(True, alias="checkDependencies"),
    force_uninstall: bool = Query(False, alias="forceUninstall"),
) -> PlainTextResponse:
    result = _svc().uninstall(check_dependencies=check_dependencies, force=force_uninstall)
    return PlainTextResponse(result.message, status_code=result.status_code)
