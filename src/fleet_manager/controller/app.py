"""FastAPI application factory for the fan-out controller."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from fleet_manager import __version__
from fleet_manager.config import ConfigError, ControllerSettings
from fleet_manager.controller.dispatcher import RequestDispatcher
from fleet_manager.controller.routers import discovery, engine, files, logs, nodes, package
from fleet_manager.controller.routers.common import init_forwarding
from fleet_manager.discovery.registry import AgentRegistry
from fleet_manager.discovery.source import DiscoverySource, FileDiscoverySource, HttpDiscoverySource
from fleet_manager.discovery.store import AnnouncementStore
from fleet_manager.web import install_error_handlers

logger = logging.getLogger(__name__)


def build_source(settings: ControllerSettings) -> DiscoverySource:
    """The discovery source selected by ``settings.discovery``.

    Raises:
        ConfigError: Unknown discovery mode, or the mode's URI/file is missing.
    """
    mode = settings.discovery.lower()
    if mode == "embedded":
        return AnnouncementStore(settings.announcement_ttl, service_type=settings.service_type)
    if mode == "http":
        if not settings.discovery_uri:
            raise ConfigError("controller.discovery_uri is required for http discovery")
        return HttpDiscoverySource(settings.discovery_uri, service_type=settings.service_type)
    if mode == "file":
        if not settings.discovery_file:
            raise ConfigError("controller.discovery_file is required for file discovery")
        return FileDiscoverySource(settings.discovery_file, service_type=settings.service_type)
    raise ConfigError(f"Unknown discovery mode {settings.discovery!r}")


def create_app(
    settings: ControllerSettings | None = None,
    *,
    source: DiscoverySource | None = None,
) -> FastAPI:
    """Build and return the controller application.

    *source* replaces the configured discovery source when given. The
    ``/v1`` discovery routes are mounted whenever the source is an
    :class:`AnnouncementStore`.
    """
    if settings is None:
        settings = ControllerSettings()
    if source is None:
        source = build_source(settings)

    registry = AgentRegistry(source)
    dispatcher = RequestDispatcher(registry)

    app = FastAPI(title="fleet-manager controller", version=__version__)
    install_error_handlers(app)

    init_forwarding(dispatcher, settings.request_timeout)
    nodes.init_router(registry)

    app.include_router(package.router)
    app.include_router(engine.router)
    app.include_router(files.create_router("config"))
    app.include_router(files.create_router("connectors"))
    app.include_router(logs.router)
    app.include_router(nodes.router)

    if isinstance(source, AnnouncementStore):
        discovery.init_router(source, settings.environment)
        app.include_router(discovery.router)

    app.state.registry = registry
    app.state.dispatcher = dispatcher
    logger.info("Controller configured with %s discovery", type(source).__name__)
    return app
