"""Shared fixtures: in-process HTTP servers standing in for agents."""

from __future__ import annotations

import threading
import urllib.parse
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


@dataclass
class RecordedRequest:
    method: str
    path: str
    query: dict[str, list[str]]
    headers: dict[str, str]
    body: bytes


@dataclass
class FakeAgent:
    """A local HTTP server that records requests and replies with a canned response."""

    status: int = 200
    body: bytes = b""
    content_type: str = "text/plain"
    delay: float = 0.0
    requests: list[RecordedRequest] = field(default_factory=list)
    _server: ThreadingHTTPServer | None = None
    _release: threading.Event = field(default_factory=threading.Event)

    @property
    def address(self) -> str:
        assert self._server is not None
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}"

    def start(self) -> FakeAgent:
        agent = self

        class _Handler(BaseHTTPRequestHandler):
            def _handle(self) -> None:
                url = urllib.parse.urlsplit(self.path)
                length = int(self.headers.get("Content-Length") or 0)
                agent.requests.append(
                    RecordedRequest(
                        method=self.command,
                        path=url.path,
                        query=urllib.parse.parse_qs(url.query),
                        headers={k.lower(): v for k, v in self.headers.items()},
                        body=self.rfile.read(length) if length else b"",
                    )
                )
                if agent.delay:
                    agent._release.wait(agent.delay)
                self.send_response(agent.status)
                self.send_header("Content-Type", agent.content_type)
                self.send_header("Content-Length", str(len(agent.body)))
                self.end_headers()
                self.wfile.write(agent.body)

            do_GET = do_PUT = do_POST = do_DELETE = _handle  # noqa: N815

            def log_message(self, format: str, *args: object) -> None:  # noqa: A002
                pass

        self._server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
        self._server.daemon_threads = True
        threading.Thread(target=self._server.serve_forever, daemon=True).start()
        return self

    def stop(self) -> None:
        self._release.set()
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()


@pytest.fixture
def fake_agent() -> Generator[Callable[..., FakeAgent], None, None]:
    """Factory fixture: ``fake_agent(status=200, body=b"...")`` starts a server."""
    started: list[FakeAgent] = []

    def _start(**kwargs: object) -> FakeAgent:
        agent = FakeAgent(**kwargs).start()  # type: ignore[arg-type]
        started.append(agent)
        return agent

    yield _start
    for agent in started:
        agent.stop()
