"""Registry listing: which agents the controller currently knows about."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from fleet_manager.discovery.registry import AgentRegistry

router = APIRouter(prefix="/nodes", tags=["nodes"])

_registry: AgentRegistry | None = None


class NodeSummary(BaseModel):
    node_id: str = Field(serialization_alias="nodeId")
    address: str
    coordinator: bool
    worker: bool


def init_router(registry: AgentRegistry) -> None:
    global _registry  # noqa: PLW0603
    _registry = registry


def _reg() -> AgentRegistry:
    assert _registry is not None, "AgentRegistry not initialized"
    return _registry


@router.get("", response_model=list[NodeSummary], response_model_by_alias=True)
def list_nodes() -> list[NodeSummary]:
    return [
        NodeSummary(
            node_id=agent.id,
            address=agent.address,
            coordinator=agent.is_coordinator,
            worker=agent.is_worker,
        )
        for agent in _reg().agents()
    ]
