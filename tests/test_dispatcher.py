"""Tests for RequestDispatcher fan-out against local agent servers."""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import pytest

from fleet_manager.controller.dispatcher import RequestDispatcher
from fleet_manager.discovery.registry import AgentRegistry
from fleet_manager.errors import ClientInputError, DiscoveryInconsistency
from fleet_manager.models import ServiceDescriptor
from fleet_manager.transport.requester import ApiRequester

if TYPE_CHECKING:
    from tests.conftest import FakeAgent


class StaticSource:
    def __init__(self, services: list[ServiceDescriptor]) -> None:
        self.services = services

    def select_all_services(self) -> list[ServiceDescriptor]:
        return list(self.services)


def _service(node_id: str, address: str, coordinator: bool = False) -> ServiceDescriptor:
    return ServiceDescriptor(
        id=f"svc-{node_id}",
        node_id=node_id,
        type="fleet-manager",
        properties={
            "http": address,
            "coordinator": str(coordinator).lower(),
            "worker": str(not coordinator).lower(),
        },
    )


def _dispatcher(*services: ServiceDescriptor) -> RequestDispatcher:
    return RequestDispatcher(AgentRegistry(StaticSource(list(services))))


def _status_request(timeout: float = 5.0) -> ApiRequester:
    return ApiRequester.builder("/engine/status").accept("application/json").timeout(timeout).build()


# --- Selector validation ---


class TestSelectors:
    def test_neither_selector(self) -> None:
        with pytest.raises(ClientInputError, match="Invalid parameters"):
            _dispatcher().forward_request(None, _status_request())

    def test_both_selectors(self) -> None:
        with pytest.raises(ClientInputError, match="Invalid parameters"):
            _dispatcher().forward_request("CLUSTER", _status_request(), ["a"])

    def test_unknown_scope(self) -> None:
        with pytest.raises(ClientInputError, match="Invalid scope"):
            _dispatcher().forward_request("EVERYONE", _status_request())

    def test_unknown_node_id(self, fake_agent: Callable[..., FakeAgent]) -> None:
        agent = fake_agent()
        dispatcher = _dispatcher(_service("a", agent.address))
        with pytest.raises(ClientInputError, match="Invalid or duplicate node ID"):
            dispatcher.forward_request(None, _status_request(), ["a", "b"])
        assert agent.requests == []

    def test_no_coordinator(self, fake_agent: Callable[..., FakeAgent]) -> None:
        agent = fake_agent()
        dispatcher = _dispatcher(_service("a", agent.address))
        with pytest.raises(DiscoveryInconsistency, match="coordinators"):
            dispatcher.forward_request("COORDINATOR", _status_request())
        assert dispatcher.registry.snapshot == frozenset()

    def test_two_coordinators(self, fake_agent: Callable[..., FakeAgent]) -> None:
        a, b = fake_agent(), fake_agent()
        dispatcher = _dispatcher(
            _service("a", a.address, coordinator=True),
            _service("b", b.address, coordinator=True),
        )
        with pytest.raises(DiscoveryInconsistency):
            dispatcher.forward_request("coordinator", _status_request())
        assert a.requests == [] and b.requests == []

    def test_empty_cluster(self) -> None:
        aggregate = _dispatcher().forward_request("CLUSTER", _status_request())
        assert aggregate.status_code == 207
        assert aggregate.responses == {}


# --- Fan-out ---


class TestFanOut:
    def test_one_slow_node_does_not_fail_the_request(
        self, fake_agent: Callable[..., FakeAgent],
    ) -> None:
        a = fake_agent(body=b'{"installed": true}', content_type="application/json")
        b = fake_agent(delay=3.0)
        c = fake_agent(body=b'{"installed": false}', content_type="application/json")
        dispatcher = _dispatcher(
            _service("A", a.address, coordinator=True),
            _service("B", b.address),
            _service("C", c.address),
        )

        aggregate = dispatcher.forward_request("CLUSTER", _status_request(timeout=0.5))

        assert aggregate.status_code == 207
        assert list(aggregate.responses) == ["A", "B", "C"]
        assert aggregate.responses["A"].status == 200
        assert aggregate.responses["A"].body == {"installed": True}
        assert aggregate.responses["B"].status == 504
        assert aggregate.responses["C"].status == 200
        assert aggregate.responses["C"].body == {"installed": False}

    def test_many_slow_nodes_time_out_together(self, fake_agent: Callable[..., FakeAgent]) -> None:
        agents = [fake_agent(delay=5.0) for _ in range(40)]
        dispatcher = _dispatcher(*(_service(f"n{i:02d}", a.address) for i, a in enumerate(agents)))

        started = time.monotonic()
        aggregate = dispatcher.forward_request("CLUSTER", _status_request(timeout=1.0))
        elapsed = time.monotonic() - started

        assert len(aggregate.responses) == 40
        assert {r.status for r in aggregate.responses.values()} == {504}
        assert elapsed < 1.8

    def test_unreachable_node_is_bad_gateway(self, fake_agent: Callable[..., FakeAgent]) -> None:
        a = fake_agent(body=b"ok")
        dispatcher = _dispatcher(
            _service("A", a.address),
            _service("B", "http://127.0.0.1:9"),
        )
        aggregate = dispatcher.forward_request("WORKERS", _status_request(timeout=2))
        assert aggregate.responses["A"].status == 200
        assert aggregate.responses["B"].status == 502

    def test_node_errors_are_passed_through(self, fake_agent: Callable[..., FakeAgent]) -> None:
        a = fake_agent(status=409, body=b"Presto is running. Please stop Presto first.")
        dispatcher = _dispatcher(_service("A", a.address))
        aggregate = dispatcher.forward_request(None, _status_request(), ["A"])
        wrapped = aggregate.responses["A"]
        assert wrapped.status == 409
        assert wrapped.reason_phrase == "Conflict"
        assert wrapped.body == "Presto is running. Please stop Presto first."

    def test_scope_selects_subset(self, fake_agent: Callable[..., FakeAgent]) -> None:
        coord, worker = fake_agent(body=b"c"), fake_agent(body=b"w")
        dispatcher = _dispatcher(
            _service("coord", coord.address, coordinator=True),
            _service("worker", worker.address),
        )
        aggregate = dispatcher.forward_request("WORKERS", _status_request())
        assert list(aggregate.responses) == ["worker"]
        assert coord.requests == []

    def test_same_template_sent_to_every_node(self, fake_agent: Callable[..., FakeAgent]) -> None:
        agents = [fake_agent() for _ in range(4)]
        dispatcher = _dispatcher(*(_service(f"n{i}", a.address) for i, a in enumerate(agents)))
        requester = (
            ApiRequester.builder("/package")
            .http_method("PUT")
            .query_param("checkDependencies", False)
            .entity("http://repo/engine.rpm")
            .build()
        )
        dispatcher.forward_request("CLUSTER", requester)
        for agent in agents:
            assert len(agent.requests) == 1
            recorded = agent.requests[0]
            assert recorded.method == "PUT"
            assert recorded.query == {"checkDependencies": ["false"]}
            assert recorded.body == b"http://repo/engine.rpm"

    def test_aggregate_body_shape(self, fake_agent: Callable[..., FakeAgent]) -> None:
        a = fake_agent(body=b'["server.log"]', content_type="application/json")
        aggregate = _dispatcher(_service("A", a.address)).forward_request("CLUSTER", _status_request())
        body = json.loads(json.dumps(aggregate.to_body()))
        assert body["A"]["status"] == 200
        assert body["A"]["reasonPhrase"] == "OK"
        assert body["A"]["body"] == ["server.log"]
        assert body["A"]["headers"]["Content-Type"] == ["application/json"]
