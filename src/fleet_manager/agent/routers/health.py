"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from fleet_manager import __version__

router = APIRouter(tags=["health"])

_node_id: str = ""
_package_kind: str = ""


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__
    node_id: str = Field(serialization_alias="nodeId")
    package_kind: str = Field(serialization_alias="packageKind")


def init_router(node_id: str, package_kind: str) -> None:
    global _node_id, _package_kind  # noqa: PLW0603
    _node_id = node_id
    _package_kind = package_kind


@router.get("/health", response_model=HealthResponse, response_model_by_alias=True)
def health_check() -> HealthResponse:
    return HealthResponse(node_id=_node_id, package_kind=_package_kind)
