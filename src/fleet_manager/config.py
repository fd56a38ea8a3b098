"""Config file loading and auto-discovery for fleet-manager.

Searches for ``fleet-manager.yaml`` in the current directory and parent
directories, parses its ``agent`` and ``controller`` sections, and resolves
all relative paths against the config file's location. Scalar settings can
be overridden with environment variables (``FLEET_MANAGER_AGENT_PORT=9000``).
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from fleet_manager.models import PackageKind

CONFIG_FILENAME = "fleet-manager.yaml"
AGENT_ENV_PREFIX = "FLEET_MANAGER_AGENT_"
CONTROLLER_ENV_PREFIX = "FLEET_MANAGER_CONTROLLER_"

DEFAULT_LOG_ENTRY_PATTERN = (
    r"(?P<date>\S+)\t(?P<level>\S+)\t(?P<thread>\S+)\t(?P<logger>\S+)\t(?P<message>.*)"
)
DEFAULT_LOG_ENTRY = "1970-01-01T00:00:00.000+0000\tINFO\tunknown\tunknown\t"

SERVICE_TYPE = "fleet-manager"

_AGENT_PATH_FIELDS = (
    "config_dir",
    "catalog_dir",
    "data_dir",
    "plugin_dir",
    "log_dir",
    "launcher",
    "launcher_properties",
    "installation_dir",
    "defaults_config_dir",
    "defaults_catalog_dir",
    "state_file",
)
_CONTROLLER_PATH_FIELDS = ("discovery_file",)


class ConfigError(Exception):
    """Raised when the config file is invalid."""


@dataclass(frozen=True)
class AgentSettings:
    """Settings for the per-node agent."""

    host: str = "0.0.0.0"
    port: int = 8090
    node_id: str | None = None
    advertise_uri: str | None = None
    environment: str = "production"
    package_kind: PackageKind = PackageKind.RPM
    package_name: str = "presto-server-rpm"
    service_name: str = "presto"
    config_dir: str = "/etc/presto"
    catalog_dir: str = "/etc/presto/catalog"
    data_dir: str = "/var/lib/presto/data"
    plugin_dir: str = "/usr/lib/presto/lib/plugin"
    log_dir: str = "/var/log/presto"
    launcher: str = "/usr/lib/presto/bin/launcher"
    launcher_properties: str | None = None
    installation_dir: str = "/opt/presto"
    defaults_config_dir: str | None = None
    defaults_catalog_dir: str | None = None
    state_file: str = "/var/lib/fleet-manager/node-state.json"
    short_timeout: float = 60.0
    long_timeout: float = 150.0
    log_entry_pattern: str = DEFAULT_LOG_ENTRY_PATTERN
    log_entry_default: str = DEFAULT_LOG_ENTRY
    discovery_uri: str | None = None
    announce_interval: float = 30.0
    announce_properties: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ControllerSettings:
    """Settings for the fan-out controller."""

    host: str = "0.0.0.0"
    port: int = 8088
    environment: str = "production"
    discovery: str = "embedded"
    discovery_uri: str | None = None
    discovery_file: str | None = None
    service_type: str = SERVICE_TYPE
    request_timeout: float = 30.0
    announcement_ttl: float = 90.0


@dataclass(frozen=True)
class FleetConfig:
    """Parsed fleet-manager project configuration."""

    config_path: Path | None = None
    agent: AgentSettings = field(default_factory=AgentSettings)
    controller: ControllerSettings = field(default_factory=ControllerSettings)


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``fleet-manager.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
    environ: dict[str, str] | None = None,
) -> FleetConfig:
    """Load a fleet-manager config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Defaults for everything.

    Environment overrides are applied last in every case.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        cfg = FleetConfig()
    else:
        cfg = _parse_config(config_path)

    env = os.environ if environ is None else environ
    return FleetConfig(
        config_path=cfg.config_path,
        agent=apply_env_overrides(cfg.agent, AGENT_ENV_PREFIX, env),
        controller=apply_env_overrides(cfg.controller, CONTROLLER_ENV_PREFIX, env),
    )


def _parse_config(config_path: Path) -> FleetConfig:
    """Read and parse a YAML config file, resolving relative paths."""
    text = config_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigError(msg)

    base = config_path.parent
    agent_data = _section(data, "agent", config_path)
    controller_data = _section(data, "controller", config_path)

    _resolve_paths(agent_data, _AGENT_PATH_FIELDS, base)
    _resolve_paths(controller_data, _CONTROLLER_PATH_FIELDS, base)

    if "package_kind" in agent_data:
        try:
            agent_data["package_kind"] = PackageKind(str(agent_data["package_kind"]).lower())
        except ValueError as e:
            raise ConfigError(
                f"Unsupported package_kind {agent_data['package_kind']!r} in {config_path}"
            ) from e

    try:
        agent = AgentSettings(**agent_data)
        controller = ControllerSettings(**controller_data)
    except TypeError as e:
        raise ConfigError(f"Unknown setting in {config_path}: {e}") from e

    return FleetConfig(config_path=config_path, agent=agent, controller=controller)


def _section(data: dict[str, Any], key: str, config_path: Path) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{key}' must be a mapping in {config_path}")
    return dict(section)


def _resolve_paths(section: dict[str, Any], keys: tuple[str, ...], base: Path) -> None:
    for key in keys:
        val = section.get(key)
        if val is not None:
            section[key] = str((base / val).resolve())


def apply_env_overrides(settings: Any, prefix: str, environ: Any) -> Any:
    """Return a copy of *settings* with scalar fields taken from *environ*.

    Only ``str``, ``int``, ``float`` and ``bool`` fields (optionally
    ``| None``) are overridable.
    """
    changes: dict[str, Any] = {}
    for fld in dataclasses.fields(settings):
        val = environ.get(f"{prefix}{fld.name.upper()}")
        if val is None:
            continue
        fld_type = str(fld.type).replace(" | None", "")
        if fld_type == "int":
            changes[fld.name] = int(val)
        elif fld_type == "float":
            changes[fld.name] = float(val)
        elif fld_type == "bool":
            changes[fld.name] = val.lower() in ("1", "true", "yes")
        elif fld_type == "PackageKind":
            changes[fld.name] = PackageKind(val.lower())
        elif fld_type == "str":
            changes[fld.name] = val
    if not changes:
        return settings
    return dataclasses.replace(settings, **changes)
