"""Periodic agent announcements to a discovery server.

The announcer PUTs one ``fleet-manager`` service for this node to
``{discovery_uri}/v1/announcement/{node_id}`` every ``interval`` seconds on
a daemon thread, and DELETEs it on shutdown. Properties are recomputed for
every announcement, so a node that becomes a coordinator is re-advertised
as one without restarting the agent.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable

from fleet_manager.config import SERVICE_TYPE
from fleet_manager.models import Announcement, ServiceAnnouncement
from fleet_manager.transport.requester import ApiRequester, ApiRequesterBuilder

logger = logging.getLogger(__name__)

PropertiesProvider = Callable[[], dict[str, str]]


class Announcer:
    """Keeps this node's announcement alive on the discovery server."""

    def __init__(
        self,
        discovery_uri: str,
        node_id: str,
        environment: str,
        properties: PropertiesProvider,
        interval: float = 30.0,
        service_type: str = SERVICE_TYPE,
        timeout: float = 10.0,
    ) -> None:
        self._discovery_uri = discovery_uri.rstrip("/")
        self._node_id = node_id
        self._environment = environment
        self._properties = properties
        self._interval = interval
        self._service_type = service_type
        self._timeout = timeout
        self._service_id = str(uuid.uuid4())
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def node_id(self) -> str:
        return self._node_id

    def build_announcement(self) -> Announcement:
        return Announcement(
            environment=self._environment,
            services=[
                ServiceAnnouncement(
                    id=self._service_id,
                    type=self._service_type,
                    properties=self._properties(),
                )
            ],
        )

    def announce(self) -> bool:
        """Send one announcement. Returns True if the server accepted it."""
        requester = (
            self._builder()
            .http_method("PUT")
            .entity(self.build_announcement().model_dump(mode="json"), "application/json")
            .build()
        )
        try:
            raw = requester.send(self._discovery_uri)
        except OSError as e:
            logger.warning("Announcement to %s failed: %s", self._discovery_uri, e)
            return False
        if not 200 <= raw.status < 300:
            logger.warning(
                "Announcement to %s rejected: %d %s", self._discovery_uri, raw.status, raw.reason,
            )
            return False
        return True

    def withdraw(self) -> bool:
        """Delete this node's announcement. Returns True on success."""
        requester = self._builder().http_method("DELETE").build()
        try:
            raw = requester.send(self._discovery_uri)
        except OSError as e:
            logger.warning("Withdrawing announcement from %s failed: %s", self._discovery_uri, e)
            return False
        return 200 <= raw.status < 300

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"announcer-{self._node_id}", daemon=True,
        )
        self._thread.start()
        logger.info(
            "Announcing node %s to %s every %.0fs",
            self._node_id, self._discovery_uri, self._interval,
        )

    def stop(self, withdraw: bool = True) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._timeout)
            self._thread = None
        if withdraw:
            self.withdraw()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.announce()
            except Exception:
                logger.exception("Unexpected error while announcing node %s", self._node_id)
            self._stop.wait(self._interval)

    def _builder(self) -> ApiRequesterBuilder:
        return (
            ApiRequester.builder("/v1/announcement/{node_id}")
            .resolve_template("node_id", self._node_id)
            .accept("application/json")
            .timeout(self._timeout)
        )
