"""Embedded discovery endpoints.

Mounted only when the controller keeps its own :class:`AnnouncementStore`;
agents announce here and the registry reads back from the same store.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from fleet_manager.discovery.store import AnnouncementStore
from fleet_manager.errors import ResourceNotFound
from fleet_manager.models import Announcement

router = APIRouter(prefix="/v1", tags=["discovery"])

_store: AnnouncementStore | None = None
_environment: str = ""


def init_router(store: AnnouncementStore, environment: str) -> None:
    global _store, _environment  # noqa: PLW0603
    _store = store
    _environment = environment


def _st() -> AnnouncementStore:
    assert _store is not None, "AnnouncementStore not initialized"
    return _store


@router.put("/announcement/{node_id}", status_code=202, response_class=PlainTextResponse)
def announce(node_id: str, announcement: Announcement) -> str:
    _st().announce(node_id, announcement)
    return "Announcement accepted"


@router.delete("/announcement/{node_id}", response_class=PlainTextResponse)
def withdraw(node_id: str) -> str:
    if not _st().remove(node_id):
        raise ResourceNotFound(f"No announcement for node {node_id}")
    return "Announcement removed"


@router.get("/service/{service_type}")
def list_services(service_type: str) -> dict[str, Any]:
    return {
        "environment": _environment,
        "services": [
            s.model_dump(mode="json", by_alias=True) for s in _st().services(service_type)
        ],
    }
