"""Service discovery: agent announcements, discovery sources, and the agent registry."""

from fleet_manager.discovery.announcer import Announcer
from fleet_manager.discovery.registry import AgentRegistry
from fleet_manager.discovery.source import (
    DiscoverySource,
    FileDiscoverySource,
    HttpDiscoverySource,
)
from fleet_manager.discovery.store import AnnouncementStore

__all__ = [
    "AgentRegistry",
    "AnnouncementStore",
    "Announcer",
    "DiscoverySource",
    "FileDiscoverySource",
    "HttpDiscoverySource",
]
