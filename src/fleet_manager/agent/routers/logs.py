"""Log file endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse

from fleet_manager.logs.handler import ALL_LEVELS, LogsHandler, parse_query_date

router = APIRouter(prefix="/logs", tags=["logs"])

_handler: LogsHandler | None = None


def init_router(handler: LogsHandler) -> None:
    global _handler  # noqa: PLW0603
    _handler = handler


def _logs() -> LogsHandler:
    assert _handler is not None, "LogsHandler not initialized"
    return _handler


@router.get("", response_model=list[str])
def list_logs() -> list[str]:
    return _logs().list_logs()


@router.get("/{file}", response_model=list[str])
def get_log(
    file: str,
    from_date: str | None = Query(None, alias="from"),
    to_date: str | None = Query(None, alias="to"),
    level: str = Query(ALL_LEVELS),
    n: int | None = Query(None, ge=0),
) -> list[str]:
    return _logs().get_logs(
        file,
        start=parse_query_date(from_date) if from_date else None,
        end=parse_query_date(to_date) if to_date else None,
        level=level,
        max_entries=n,
    )


@router.delete("/{file}", response_class=PlainTextResponse)
def delete_log(
    file: str,
    to_date: str | None = Query(None, alias="to"),
) -> str:
    return _logs().delete_logs(file, end=parse_query_date(to_date) if to_date else None)
