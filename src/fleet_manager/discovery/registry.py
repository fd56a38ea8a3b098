"""Discovery-backed registry of agents.

Every lookup refreshes the full agent set from the discovery source under a
lock and then answers from that snapshot. A refresh either replaces the
snapshot with a complete new one or empties it and raises; readers never
see a partially built set.
"""

from __future__ import annotations

import logging
import threading
import urllib.parse
from collections.abc import Collection

from fleet_manager.discovery.source import DiscoverySource
from fleet_manager.errors import ClientInputError, DiscoveryInconsistency
from fleet_manager.models import Agent, Scope, ServiceDescriptor

logger = logging.getLogger(__name__)

COORDINATOR_PROPERTY = "coordinator"
WORKER_PROPERTY = "worker"
ADDRESS_PROPERTIES = ("https", "http")


class AgentRegistry:
    """Resolves node ids and scopes to agent base addresses."""

    def __init__(self, source: DiscoverySource) -> None:
        self._source = source
        self._lock = threading.Lock()
        self._agents: frozenset[Agent] = frozenset()

    @property
    def snapshot(self) -> frozenset[Agent]:
        """The last refreshed agent set, without refreshing."""
        return self._agents

    def refresh(self) -> frozenset[Agent]:
        """Re-read the discovery source and replace the snapshot.

        Raises:
            DiscoveryInconsistency: If any node announced a malformed
                address or two services share a node id. The snapshot is
                left empty.
        """
        with self._lock:
            try:
                services = self._source.select_all_services()
                agents = _build_agents(services)
            except DiscoveryInconsistency:
                self._agents = frozenset()
                raise
            self._agents = agents
            logger.debug("Discovery refresh found %d agent(s)", len(agents))
            return agents

    def invalidate(self) -> None:
        """Drop the current snapshot."""
        with self._lock:
            self._agents = frozenset()

    def agents(self) -> list[Agent]:
        """All agents, refreshed, sorted by id."""
        return sorted(self.refresh(), key=lambda a: a.id)

    def resolve_ids(self, ids: Collection[str]) -> dict[str, str]:
        """Map each of *ids* to its address.

        Raises ClientInputError if any id is unknown or repeated.
        """
        agents = self.refresh()
        wanted = set(ids)
        resolved = {a.id: a.address for a in agents if a.id in wanted}
        if len(resolved) != len(ids):
            raise ClientInputError("Invalid or duplicate node ID")
        return resolved

    def resolve_scope(self, scope: Scope) -> dict[str, str]:
        """Map every agent in *scope* to its address."""
        agents = self.refresh()
        if scope is Scope.COORDINATOR:
            selected = [a for a in agents if a.is_coordinator]
        elif scope is Scope.WORKERS:
            selected = [a for a in agents if a.is_worker]
        else:
            selected = list(agents)
        return {a.id: a.address for a in selected}


def _build_agents(services: list[ServiceDescriptor]) -> frozenset[Agent]:
    agents: dict[str, Agent] = {}
    for service in services:
        props = service.properties
        address = _address(props)
        if address is None:
            raw = next((props[k] for k in ADDRESS_PROPERTIES if k in props), None)
            logger.warning("Invalid URI %r provided by node with ID %r", raw, service.node_id)
            raise DiscoveryInconsistency(
                f"Invalid URI {raw!r} for node with ID {service.node_id!r}"
            )
        if service.node_id in agents:
            logger.warning("Duplicate node ID %r in discovery results", service.node_id)
            raise DiscoveryInconsistency(f"Duplicate node ID {service.node_id!r}")
        agents[service.node_id] = Agent(
            id=service.node_id,
            address=address,
            is_coordinator=_flag(props.get(COORDINATOR_PROPERTY)),
            is_worker=_flag(props.get(WORKER_PROPERTY)),
        )
    return frozenset(agents.values())


def _address(props: dict[str, str]) -> str | None:
    """The node's base URL, preferring https, or None if malformed."""
    for key in ADDRESS_PROPERTIES:
        raw = props.get(key)
        if raw is None:
            continue
        try:
            parsed = urllib.parse.urlsplit(raw.strip())
            if parsed.port == 0:
                return None
        except ValueError:
            return None
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return None
        if parsed.path not in ("", "/") or parsed.query or parsed.fragment:
            return None
        return f"{parsed.scheme}://{parsed.netloc}"
    return None


def _flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() == "true"
