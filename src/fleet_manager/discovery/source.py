"""Discovery sources: where the controller learns which agents exist.

A source is anything with ``select_all_services()``. Three are provided:

- :class:`~fleet_manager.discovery.store.AnnouncementStore` (embedded in the
  controller, fed by agent announcements)
- :class:`HttpDiscoverySource` (an external discovery server)
- :class:`FileDiscoverySource` (a static YAML list)
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path
from typing import Protocol, runtime_checkable

import yaml
from pydantic import ValidationError

from fleet_manager.config import SERVICE_TYPE
from fleet_manager.errors import DiscoveryInconsistency
from fleet_manager.models import ServiceDescriptor

logger = logging.getLogger(__name__)


@runtime_checkable
class DiscoverySource(Protocol):
    """Returns every currently announced service of one type."""

    def select_all_services(self) -> list[ServiceDescriptor]: ...


class HttpDiscoverySource:
    """Reads ``GET {uri}/v1/service/{type}`` from a discovery server."""

    def __init__(
        self,
        discovery_uri: str,
        service_type: str = SERVICE_TYPE,
        timeout: float = 10.0,
    ) -> None:
        quoted = urllib.parse.quote(service_type, safe="")
        self._url = f"{discovery_uri.rstrip('/')}/v1/service/{quoted}"
        self._timeout = timeout

    def select_all_services(self) -> list[ServiceDescriptor]:
        req = urllib.request.Request(
            self._url, headers={"Accept": "application/json"}, method="GET",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Discovery request to %s failed: %s", self._url, e)
            raise DiscoveryInconsistency(f"Discovery server unavailable: {e}") from e

        try:
            return [ServiceDescriptor.model_validate(s) for s in data.get("services", [])]
        except (AttributeError, ValidationError) as e:
            raise DiscoveryInconsistency(f"Malformed discovery response: {e}") from e


class FileDiscoverySource:
    """Reads a static service list from YAML.

    Example::

        services:
          - id: 8c5b...
            nodeId: node-1
            type: fleet-manager
            properties:
              http: http://10.0.0.5:8090
              coordinator: "true"
              worker: "false"

    The file is re-read on every call so edits take effect immediately.
    """

    def __init__(self, path: str | Path, service_type: str = SERVICE_TYPE) -> None:
        self._path = Path(path)
        self._service_type = service_type

    def select_all_services(self) -> list[ServiceDescriptor]:
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise DiscoveryInconsistency(f"Cannot read discovery file {self._path}: {e}") from e

        entries = data.get("services", []) if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise DiscoveryInconsistency(f"Expected a 'services' list in {self._path}")

        services: list[ServiceDescriptor] = []
        for entry in entries:
            if isinstance(entry, dict):
                entry = {"type": self._service_type, **entry}
                entry["properties"] = {
                    str(k): _property_str(v) for k, v in (entry.get("properties") or {}).items()
                }
            try:
                service = ServiceDescriptor.model_validate(entry)
            except ValidationError as e:
                raise DiscoveryInconsistency(f"Invalid service in {self._path}: {e}") from e
            if service.type == self._service_type:
                services.append(service)
        return services


def _property_str(value: object) -> str:
    # YAML turns unquoted true/false into booleans
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
