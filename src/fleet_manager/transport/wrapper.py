"""Normalize one agent's HTTP response for the controller's aggregate body."""

from __future__ import annotations

import http
import json
import logging
import urllib.error
from typing import Any

from fleet_manager.models import WrappedResponse
from fleet_manager.transport.requester import RawResponse

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


def wrap_response(raw: RawResponse) -> WrappedResponse:
    """Convert *raw* into a :class:`WrappedResponse`.

    JSON bodies are decoded; an empty or undecodable JSON body becomes
    ``None``. Every other content type is passed through as text, so an
    empty text reply stays ``""``.
    """
    headers: dict[str, list[str]] = {}
    for name, value in raw.headers:
        headers.setdefault(name, []).append(value)

    return WrappedResponse(
        status=raw.status,
        reason_phrase=raw.reason or _default_reason(raw.status),
        headers=headers,
        body=_decode_body(raw),
    )


def wrap_transport_error(exc: BaseException) -> WrappedResponse:
    """Wrap a failure to reach an agent as that agent's own entry.

    Timeouts become 504, other connection errors 502.
    """
    status = http.HTTPStatus.GATEWAY_TIMEOUT if is_timeout(exc) else http.HTTPStatus.BAD_GATEWAY
    reason = exc.reason if isinstance(exc, urllib.error.URLError) else exc
    return WrappedResponse(
        status=status.value,
        reason_phrase=status.phrase,
        headers={},
        body=str(reason) or type(exc).__name__,
    )


def is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, TimeoutError):
        return True
    return isinstance(exc, urllib.error.URLError) and isinstance(exc.reason, TimeoutError)


def media_type(content_type: str | None) -> str:
    """The ``type/subtype`` part of a Content-Type header, lowercased."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def _charset(content_type: str | None) -> str:
    if content_type:
        for param in content_type.split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
    return "utf-8"


def _decode_body(raw: RawResponse) -> Any:
    content_type = raw.header("Content-Type")
    try:
        text = raw.body.decode(_charset(content_type), errors="replace")
    except LookupError:
        text = raw.body.decode("utf-8", errors="replace")
    if media_type(content_type) != JSON_MEDIA_TYPE:
        return text
    try:
        return json.loads(text)
    except ValueError:
        logger.debug("Discarding undecodable JSON body (status %d)", raw.status)
        return None


def _default_reason(status: int) -> str:
    try:
        return http.HTTPStatus(status).phrase
    except ValueError:
        return ""
