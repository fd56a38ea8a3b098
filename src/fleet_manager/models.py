"""Core data models for fleet-manager.

Defines the schemas for:
- Scopes and node identities (who a controller request targets)
- Wrapped per-node responses and the multi-status aggregate
- Discovery announcements (what agents publish about themselves)
- Local node state (what is installed on this node)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

MULTI_STATUS = 207

# --- Enums ---


class Scope(enum.StrEnum):
    CLUSTER = "CLUSTER"
    WORKERS = "WORKERS"
    COORDINATOR = "COORDINATOR"

    @classmethod
    def parse(cls, value: str) -> Scope:
        """Case-insensitive lookup. Raises ValueError for unknown names."""
        return cls(value.strip().upper())


class PackageKind(enum.StrEnum):
    RPM = "rpm"
    TARBALL = "tarball"


class StopType(enum.StrEnum):
    GRACEFUL = "GRACEFUL"
    TERMINATE = "TERMINATE"
    KILL = "KILL"


# --- Discovery ---


@dataclass(frozen=True)
class Agent:
    """A node known to the controller.

    Equality and hashing use ``id`` only, so two snapshots of the same
    node compare equal even if its address moved.
    """

    id: str
    address: str = field(compare=False)
    is_coordinator: bool = field(default=False, compare=False)
    is_worker: bool = field(default=False, compare=False)


class ServiceDescriptor(BaseModel):
    """One announced service, as returned by a discovery backend."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    node_id: str = Field(alias="nodeId")
    type: str
    pool: str = "general"
    location: str = ""
    properties: dict[str, str] = Field(default_factory=dict)


class ServiceAnnouncement(BaseModel):
    """A service inside an agent's announcement."""

    id: str
    type: str
    properties: dict[str, str] = Field(default_factory=dict)


class Announcement(BaseModel):
    """Body of ``PUT /v1/announcement/{nodeId}``."""

    environment: str
    pool: str = "general"
    location: str = ""
    services: list[ServiceAnnouncement] = Field(default_factory=list)


# --- Controller responses ---


class WrappedResponse(BaseModel):
    """A single node's response, normalized for the aggregate body."""

    model_config = ConfigDict(populate_by_name=True)

    status: int
    reason_phrase: str = Field(alias="reasonPhrase")
    headers: dict[str, list[str]] = Field(default_factory=dict)
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class AggregateResponse(BaseModel):
    """Multi-status result of one dispatch, keyed by node id."""

    status_code: int = MULTI_STATUS
    responses: dict[str, WrappedResponse] = Field(default_factory=dict)

    def to_body(self) -> dict[str, Any]:
        return {
            node_id: wrapped.model_dump(mode="json", by_alias=True)
            for node_id, wrapped in self.responses.items()
        }


# --- Agent-local state ---


class NodeState(BaseModel):
    """Persisted per-node state, stored next to the node's configuration."""

    package_kind: PackageKind | None = None
    updated_at: datetime | None = None


class EngineStatus(BaseModel):
    """Result of ``GET /engine/status``.

    Extra fields reported by the running engine (environment, coordinator,
    uptime) are passed through unchanged.
    """

    model_config = ConfigDict(extra="allow")

    installed: bool
    running: bool | None = None
    version: str | None = None
    state: str | None = None


@dataclass(frozen=True)
class CommandResult:
    """Exit code and merged stdout/stderr of a finished subprocess."""

    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0
