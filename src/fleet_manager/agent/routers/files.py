"""Config and connector file endpoints.

The same routes serve ``/config`` (engine configuration directory) and
``/connectors`` (catalog directory), so the router is built per group.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from fleet_manager.agent.files import FileHandler
from fleet_manager.web import text_body


def create_router(group: str, handler: FileHandler) -> APIRouter:
    """Routes for one file group, e.g. ``create_router("config", handler)``."""
    router = APIRouter(prefix=f"/{group}", tags=[group])

    @router.get("", response_model=list[str])
    def list_files() -> list[str]:
        return handler.list_files()

    @router.get("/{file}", response_class=PlainTextResponse)
    def get_file(file: str) -> str:
        return handler.get_file(file)

    @router.post("/{file}", response_class=PlainTextResponse, status_code=202)
    def replace_file(file: str, url: Annotated[str, Depends(text_body)]) -> str:
        handler.replace_from_url(file, url)
        return "File replaced"

    @router.delete("/{file}", response_class=PlainTextResponse, status_code=202)
    def delete_file(file: str) -> str:
        handler.delete_file(file)
        return "File deleted"

    @router.get("/{file}/{prop}", response_class=PlainTextResponse)
    def get_property(file: str, prop: str) -> str:
        return handler.get_property(file, prop)

    @router.put("/{file}/{prop}", response_class=PlainTextResponse)
    def set_property(file: str, prop: str, value: Annotated[str, Depends(text_body)]) -> str:
        handler.set_property(file, prop, value.strip())
        return "Successfully updated the property of file"

    @router.delete("/{file}/{prop}", response_class=PlainTextResponse, status_code=202)
    def delete_property(file: str, prop: str) -> str:
        handler.delete_property(file, prop)
        return "Deleted property"

    return router
