"""fleet-manager CLI: run agents and the controller, inspect logs and nodes.

Commands:
    init              Scaffold a fleet-manager.yaml
    agent serve       Run the per-node agent
    controller serve  Run the fan-out controller
    logs show         Filter a local log file
    nodes list        Show the agents a discovery source reports
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from fleet_manager import __version__
from fleet_manager.config import CONFIG_FILENAME, ConfigError, ControllerSettings, FleetConfig, load_config
from fleet_manager.controller.app import build_source
from fleet_manager.discovery.registry import AgentRegistry
from fleet_manager.discovery.source import DiscoverySource, HttpDiscoverySource
from fleet_manager.errors import FleetManagerError
from fleet_manager.logs.filter import LogFilterError
from fleet_manager.logs.handler import ALL_LEVELS, LogsHandler, parse_query_date


def _load(config: str | None) -> FleetConfig:
    """Load *config* (or auto-discover), exiting with a message on failure."""
    try:
        return load_config(config)
    except (FileNotFoundError, ConfigError, ValueError) as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)


_config_option = click.option(
    "--config", "-c", "config", default=None,
    help=f"Path to {CONFIG_FILENAME} (default: search upwards from cwd)",
)


# --- Root group ---


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """fleet-manager: agents and a controller for a distributed query engine."""


# --- init command ---


_INIT_CONFIG = """\
# fleet-manager configuration
# Paths are relative to this file.

agent:
  port: 8090
  environment: production
  # rpm or tarball
  package_kind: rpm
  config_dir: /etc/presto
  catalog_dir: /etc/presto/catalog
  data_dir: /var/lib/presto/data
  log_dir: /var/log/presto
  state_file: ./node-state.json
  # Where to announce this node (the controller, with embedded discovery)
  discovery_uri: http://localhost:8088

controller:
  port: 8088
  environment: production
  # embedded, http or file
  discovery: embedded
  request_timeout: 30
"""


@cli.command()
@click.argument("directory", default=".")
def init(directory: str) -> None:
    """Scaffold a fleet-manager.yaml in DIRECTORY."""
    root = Path(directory)
    root.mkdir(parents=True, exist_ok=True)

    config_file = root / CONFIG_FILENAME
    if config_file.exists():
        click.echo(f"  skip  {CONFIG_FILENAME} (already exists)")
        return

    config_file.write_text(_INIT_CONFIG, encoding="utf-8")
    click.echo(click.style("Created:", fg="green", bold=True))
    click.echo(f"  + {CONFIG_FILENAME}")
    click.echo("\n" + click.style("Next steps:", bold=True))
    click.echo("  fleet-manager controller serve")
    click.echo("  fleet-manager agent serve")


# --- agent / controller serve ---


@cli.group()
def agent() -> None:
    """Per-node agent commands."""


@agent.command("serve")
@_config_option
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", default=None, type=int, help="Port number (overrides config)")
def agent_serve(config: str | None, host: str | None, port: int | None) -> None:
    """Run the agent HTTP server."""
    import uvicorn

    from fleet_manager.agent.app import create_app

    settings = _load(config).agent
    try:
        app = create_app(settings)
    except (ConfigError, LogFilterError, FleetManagerError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    host = host or settings.host
    port = port or settings.port
    click.echo(f"fleet-manager agent ({settings.package_kind}) on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


@cli.group()
def controller() -> None:
    """Fan-out controller commands."""


@controller.command("serve")
@_config_option
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", default=None, type=int, help="Port number (overrides config)")
def controller_serve(config: str | None, host: str | None, port: int | None) -> None:
    """Run the controller HTTP server."""
    import uvicorn

    from fleet_manager.controller.app import create_app

    settings = _load(config).controller
    try:
        app = create_app(settings)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    host = host or settings.host
    port = port or settings.port
    click.echo(f"fleet-manager controller ({settings.discovery} discovery) on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")


# --- logs show ---


@cli.group()
def logs() -> None:
    """Local log inspection."""


@logs.command("show")
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False))
@_config_option
@click.option("--level", default=ALL_LEVELS, help="Only entries at this level (default: ALL)")
@click.option("--from", "from_date", default=None, help="Earliest entry date (ISO 8601)")
@click.option("--to", "to_date", default=None, help="Latest entry date (ISO 8601)")
@click.option("-n", "max_entries", default=None, type=int, help="Maximum number of entries")
def logs_show(
    log_file: str,
    config: str | None,
    level: str,
    from_date: str | None,
    to_date: str | None,
    max_entries: int | None,
) -> None:
    """Print the entries of LOG_FILE that pass the filters.

    Entries are parsed with the agent's configured entry pattern. With
    --from, the first N entries are kept; otherwise the last N.
    """
    settings = _load(config).agent
    path = Path(log_file).resolve()
    try:
        handler = LogsHandler(path.parent, settings.log_entry_pattern, settings.log_entry_default)
        entries = handler.get_logs(
            path.name,
            start=parse_query_date(from_date) if from_date else None,
            end=parse_query_date(to_date) if to_date else None,
            level=level,
            max_entries=max_entries,
        )
    except (LogFilterError, FleetManagerError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for entry in entries:
        click.echo(entry.replace("\r\n", "\n"))


# --- nodes list ---


def _cli_source(settings: ControllerSettings, discovery_uri: str | None) -> DiscoverySource:
    if discovery_uri:
        return HttpDiscoverySource(discovery_uri, service_type=settings.service_type)
    if settings.discovery.lower() == "embedded":
        # the store lives in the running controller; read it over HTTP
        return HttpDiscoverySource(
            f"http://localhost:{settings.port}", service_type=settings.service_type,
        )
    return build_source(settings)


@cli.group()
def nodes() -> None:
    """Discovered agents."""


@nodes.command("list")
@_config_option
@click.option("--discovery-uri", default=None, help="Discovery server to query (overrides config)")
@click.option("--json-output", is_flag=True, help="Output as JSON")
def nodes_list(config: str | None, discovery_uri: str | None, json_output: bool) -> None:
    """Show every agent the discovery source reports."""
    settings = _load(config).controller
    try:
        agents = AgentRegistry(_cli_source(settings, discovery_uri)).agents()
    except (ConfigError, FleetManagerError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        data = [
            {
                "nodeId": a.id,
                "address": a.address,
                "coordinator": a.is_coordinator,
                "worker": a.is_worker,
            }
            for a in agents
        ]
        click.echo(json.dumps(data, indent=2))
        return

    if not agents:
        click.echo("No agents found.")
        return
    for a in agents:
        roles = [r for r, on in (("coordinator", a.is_coordinator), ("worker", a.is_worker)) if on]
        click.echo(f"  {a.id:<30} {a.address:<35} " + click.style(",".join(roles) or "-", fg="cyan"))
    click.echo(f"\n{len(agents)} agent(s) found.")
