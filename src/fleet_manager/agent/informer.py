"""Facts about the local engine: its port, its role, and its live state.

The node's role comes from the static ``coordinator`` property in the
engine's ``config.properties``. It is read fresh on every call.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from fleet_manager.agent.files import read_properties
from fleet_manager.errors import FleetManagerError, ResourceNotFound
from fleet_manager.transport.requester import ApiRequester

logger = logging.getLogger(__name__)

PORT_PROPERTY = "http-server.http.port"
COORDINATOR_PROPERTY = "coordinator"
INCLUDE_COORDINATOR_PROPERTY = "node-scheduler.include-coordinator"
SHUTTING_DOWN = "SHUTTING_DOWN"


class EngineInformer:
    """Reads the engine's config and talks to its local HTTP endpoints."""

    def __init__(self, config_dir: str | Path, host: str = "localhost", timeout: float = 5.0) -> None:
        self._config_file = Path(config_dir) / "config.properties"
        self._host = host
        self._timeout = timeout

    @property
    def config_file(self) -> Path:
        return self._config_file

    def _properties(self) -> dict[str, str]:
        try:
            return read_properties(self._config_file)
        except ResourceNotFound:
            return {}

    def port(self) -> int:
        raw = self._properties().get(PORT_PROPERTY)
        if raw is None:
            raise FleetManagerError(f"{PORT_PROPERTY} is not set in {self._config_file}")
        try:
            return int(raw)
        except ValueError as e:
            raise FleetManagerError(f"Invalid {PORT_PROPERTY} {raw!r} in {self._config_file}") from e

    def is_coordinator(self) -> bool:
        return self._properties().get(COORDINATOR_PROPERTY, "false").strip().lower() == "true"

    def is_worker(self) -> bool:
        props = self._properties()
        if props.get(COORDINATOR_PROPERTY, "false").strip().lower() != "true":
            return True
        return props.get(INCLUDE_COORDINATOR_PROPERTY, "false").strip().lower() == "true"

    def base_url(self) -> str:
        return f"http://{self._host}:{self.port()}"

    def info(self) -> dict[str, Any]:
        """``GET /v1/info``. Raises OSError if the engine is unreachable."""
        return self._get_json("/v1/info")

    def state(self) -> Any:
        """``GET /v1/info/state``. Raises OSError if the engine is unreachable."""
        return self._get_json("/v1/info/state")

    def graceful_shutdown(self) -> None:
        """Ask the engine to drain and shut down.

        An unreachable engine is logged and treated as already stopped.
        """
        requester = (
            ApiRequester.builder("/v1/info/state")
            .http_method("PUT")
            .entity(json.dumps(SHUTTING_DOWN), "application/json")
            .timeout(self._timeout)
            .build()
        )
        try:
            raw = requester.send(self.base_url())
        except OSError as e:
            logger.warning("Engine is not running: %s", e)
            return
        if raw.status != 200:
            raise FleetManagerError(f"Failed to stop engine gracefully: {raw.status} {raw.reason}")
        logger.info("Engine is shutting down gracefully")

    def _get_json(self, path: str) -> Any:
        requester = (
            ApiRequester.builder(path)
            .accept("application/json")
            .timeout(self._timeout)
            .build()
        )
        raw = requester.send(self.base_url())
        if raw.status != 200:
            raise FleetManagerError(f"GET {path} returned {raw.status} {raw.reason}")
        try:
            return json.loads(raw.body.decode("utf-8"))
        except ValueError as e:
            raise FleetManagerError(f"Invalid JSON from engine at {path}") from e
