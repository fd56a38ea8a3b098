"""Replayable HTTP request templates.

An :class:`ApiRequester` is built once and then sent to any number of base
addresses. It holds nothing mutable, so concurrent ``send`` calls against
different agents never see each other's state.

Usage::

    requester = (
        ApiRequester.builder("/logs")
        .path("{file}")
        .resolve_template("file", "server.log")
        .query_param("level", "ERROR")
        .accept("application/json")
        .build()
    )
    raw = requester.send("http://10.0.0.5:8090")

Uses stdlib ``urllib.request``.
"""

from __future__ import annotations

import json
import threading
import urllib.error
import urllib.parse
import urllib.request
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any

DEFAULT_ACCEPT = "text/plain"
DEFAULT_TIMEOUT = 30.0

_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"})


@dataclass(frozen=True)
class RawResponse:
    """Status line, headers and body of one HTTP exchange."""

    status: int
    reason: str
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """First value of *name*, compared case-insensitively."""
        wanted = name.lower()
        for key, value in self.headers:
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class ApiRequester:
    """An immutable request template, re-targeted at a base address per send."""

    path: str
    method: str = "GET"
    query: tuple[tuple[str, str], ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes | None = None
    content_type: str | None = None
    accept: str = DEFAULT_ACCEPT
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def builder(cls, base_path: str = "") -> ApiRequesterBuilder:
        return ApiRequesterBuilder(base_path)

    def url_for(self, address: str) -> str:
        """Full URL of this request against *address* (scheme, host and port)."""
        url = address.rstrip("/") + self.path
        if self.query:
            url += "?" + urllib.parse.urlencode(self.query)
        return url

    def send(self, address: str) -> RawResponse:
        """Send the request to *address* and return the response.

        Non-2xx statuses are returned, not raised. Connection failures and
        timeouts propagate as ``OSError`` (``urllib.error.URLError``,
        ``TimeoutError``).
        """
        req = urllib.request.Request(
            self.url_for(address),
            data=self.body,
            headers=self._request_headers(),
            method=self.method,
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return RawResponse(
                    status=resp.status,
                    reason=resp.reason or "",
                    headers=tuple(resp.headers.items()),
                    body=resp.read(),
                )
        except urllib.error.HTTPError as e:
            try:
                body = e.read()
            finally:
                e.close()
            return RawResponse(
                status=e.code,
                reason=str(e.reason or ""),
                headers=tuple(e.headers.items()) if e.headers is not None else (),
                body=body,
            )

    def send_async(
        self, address: str, executor: Executor | None = None,
    ) -> Future[RawResponse]:
        """Like :meth:`send`, but returns a future.

        Runs on *executor* when given, otherwise on a dedicated daemon thread.
        """
        if executor is not None:
            return executor.submit(self.send, address)

        future: Future[RawResponse] = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(self.send(address))
            except Exception as e:
                future.set_exception(e)

        threading.Thread(target=_run, name=f"send-{address}", daemon=True).start()
        return future

    def _request_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        for name, value in self.headers:
            # urllib takes one value per header; repeated headers are comma-joined
            headers[name] = f"{headers[name]}, {value}" if name in headers else value
        headers.setdefault("Accept", self.accept)
        if self.body is not None and self.content_type:
            headers.setdefault("Content-Type", self.content_type)
        return headers


class ApiRequesterBuilder:
    """Mutable accumulator for :class:`ApiRequester`.

    ``build()`` copies everything into the immutable template, so the
    builder may be reused or modified afterwards without affecting it.
    """

    def __init__(self, base_path: str = "") -> None:
        self._segments: list[str] = []
        self._templates: dict[str, str] = {}
        self._query: list[tuple[str, str]] = []
        self._headers: list[tuple[str, str]] = []
        self._method = "GET"
        self._body: bytes | None = None
        self._content_type: str | None = None
        self._accept = DEFAULT_ACCEPT
        self._timeout = DEFAULT_TIMEOUT
        if base_path:
            self.path(base_path)

    def path(self, segment: str) -> ApiRequesterBuilder:
        """Append a path segment (may contain ``{name}`` placeholders)."""
        self._segments.extend(s for s in segment.split("/") if s)
        return self

    def resolve_template(self, name: str, value: Any) -> ApiRequesterBuilder:
        """Bind placeholder ``{name}`` to *value* (percent-encoded)."""
        self._templates[name] = urllib.parse.quote(str(value), safe="")
        return self

    def query_param(self, name: str, *values: Any) -> ApiRequesterBuilder:
        """Add one or more values for query parameter *name*."""
        for value in values:
            if value is None:
                raise ValueError(f"Query parameter {name!r} has a None value")
            self._query.append((name, _query_value(value)))
        return self

    def http_method(self, method: str) -> ApiRequesterBuilder:
        method = method.upper()
        if method not in _METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        self._method = method
        return self

    def header(self, name: str, value: str) -> ApiRequesterBuilder:
        self._headers.append((name, value))
        return self

    def accept(self, media_type: str) -> ApiRequesterBuilder:
        self._accept = media_type
        return self

    def entity(self, body: Any, media_type: str = "text/plain") -> ApiRequesterBuilder:
        """Set the request body. Non-bytes, non-str bodies are JSON-encoded."""
        if body is None:
            self._body = None
            self._content_type = None
            return self
        if isinstance(body, bytes):
            self._body = body
        elif isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = json.dumps(body).encode("utf-8")
            media_type = "application/json"
        self._content_type = media_type
        return self

    def timeout(self, seconds: float) -> ApiRequesterBuilder:
        self._timeout = seconds
        return self

    def build(self) -> ApiRequester:
        """Freeze the accumulated state into an :class:`ApiRequester`.

        Raises ValueError if a ``{name}`` placeholder is left unresolved.
        """
        segments = []
        for segment in self._segments:
            resolved = segment
            if "{" in segment:
                try:
                    resolved = segment.format_map(self._templates)
                except KeyError as e:
                    raise ValueError(f"Unresolved path template {e.args[0]!r}") from e
            segments.append(resolved)
        return ApiRequester(
            path="/" + "/".join(segments),
            method=self._method,
            query=tuple(self._query),
            headers=tuple(self._headers),
            body=self._body,
            content_type=self._content_type,
            accept=self._accept,
            timeout=self._timeout,
        )


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
