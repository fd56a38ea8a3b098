"""In-memory announcement store for embedded discovery.

Agents ``PUT /v1/announcement/{nodeId}`` on the controller; the store keeps
each announcement until it is replaced, deleted, or older than the TTL.
All state is in-memory and thread-safe via a single lock.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from fleet_manager.config import SERVICE_TYPE
from fleet_manager.models import Announcement, ServiceDescriptor

logger = logging.getLogger(__name__)


class AnnouncementStore:
    """TTL-expiring store of agent announcements, usable as a discovery source."""

    def __init__(
        self,
        ttl_seconds: float = 90.0,
        service_type: str = SERVICE_TYPE,
        _clock: Callable[[], float] | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self._ttl = ttl_seconds
        self._service_type = service_type
        self._clock = _clock or time.monotonic
        self._lock = threading.Lock()
        self._announcements: dict[str, tuple[float, Announcement]] = {}

    def announce(self, node_id: str, announcement: Announcement) -> bool:
        """Store *announcement* for *node_id*. Returns True if the node is new."""
        now = self._clock()
        with self._lock:
            self._expire(now)
            is_new = node_id not in self._announcements
            self._announcements[node_id] = (now, announcement)
        if is_new:
            logger.info("Node %s announced %d service(s)", node_id, len(announcement.services))
        return is_new

    def remove(self, node_id: str) -> bool:
        """Forget *node_id*. Returns False if it wasn't known."""
        with self._lock:
            removed = self._announcements.pop(node_id, None) is not None
        if removed:
            logger.info("Node %s withdrew its announcement", node_id)
        return removed

    def services(self, service_type: str | None = None) -> list[ServiceDescriptor]:
        """Live services of *service_type* (default: the configured type)."""
        wanted = service_type or self._service_type
        now = self._clock()
        with self._lock:
            self._expire(now)
            snapshot = list(self._announcements.items())

        result: list[ServiceDescriptor] = []
        for node_id, (_, announcement) in snapshot:
            for service in announcement.services:
                if service.type != wanted:
                    continue
                result.append(
                    ServiceDescriptor(
                        id=service.id,
                        node_id=node_id,
                        type=service.type,
                        pool=announcement.pool,
                        location=announcement.location,
                        properties=dict(service.properties),
                    )
                )
        return result

    def select_all_services(self) -> list[ServiceDescriptor]:
        return self.services()

    def _expire(self, now: float) -> None:
        cutoff = now - self._ttl
        stale = [nid for nid, (ts, _) in self._announcements.items() if ts < cutoff]
        for node_id in stale:
            del self._announcements[node_id]
            logger.info("Announcement for node %s expired", node_id)
