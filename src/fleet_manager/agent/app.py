"""FastAPI application factory for the per-node agent."""

from __future__ import annotations

import logging
import socket
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from fleet_manager import __version__
from fleet_manager.agent.commands import CommandExecutor
from fleet_manager.agent.deployer import ConfigDeployer
from fleet_manager.agent.files import FileHandler
from fleet_manager.agent.informer import EngineInformer
from fleet_manager.agent.lifecycle import LifecycleService
from fleet_manager.agent.packages import PackageController, build_package_controller
from fleet_manager.agent.routers import engine, files, health, logs, package
from fleet_manager.agent.state import NodeStateStore
from fleet_manager.agent.tasks import TaskRunner
from fleet_manager.config import AgentSettings
from fleet_manager.discovery.announcer import Announcer
from fleet_manager.logs.handler import LogsHandler
from fleet_manager.web import install_error_handlers

logger = logging.getLogger(__name__)


def resolve_node_id(settings: AgentSettings) -> str:
    return settings.node_id or socket.gethostname()


def advertised_uri(settings: AgentSettings) -> str:
    if settings.advertise_uri:
        return settings.advertise_uri.rstrip("/")
    return f"http://{socket.getfqdn()}:{settings.port}"


def build_announcer(
    settings: AgentSettings, node_id: str, informer: EngineInformer,
) -> Announcer | None:
    """An announcer for *settings*, or None when no discovery URI is configured."""
    if not settings.discovery_uri:
        return None
    uri = advertised_uri(settings)

    def _properties() -> dict[str, str]:
        props = {
            "http": uri,
            "coordinator": str(informer.is_coordinator()).lower(),
            "worker": str(informer.is_worker()).lower(),
        }
        props.update(settings.announce_properties)
        return props

    return Announcer(
        settings.discovery_uri,
        node_id=node_id,
        environment=settings.environment,
        properties=_properties,
        interval=settings.announce_interval,
    )


def create_app(
    settings: AgentSettings | None = None,
    *,
    controller: PackageController | None = None,
    tasks: TaskRunner | None = None,
    informer: EngineInformer | None = None,
    announce: bool = True,
) -> FastAPI:
    """Build and return the agent application.

    Services are built from *settings* (defaults if omitted) and injected
    into each router via its ``init_router()`` function. *controller*,
    *tasks* and *informer* replace the configured ones when given.
    """
    if settings is None:
        settings = AgentSettings()

    executor = CommandExecutor(settings.short_timeout, settings.long_timeout)
    deployer = ConfigDeployer(
        executor,
        environment=settings.environment,
        defaults_config_dir=settings.defaults_config_dir,
        defaults_catalog_dir=settings.defaults_catalog_dir,
    )
    if controller is None:
        controller = build_package_controller(settings, executor, deployer)
    if tasks is None:
        tasks = TaskRunner()
    if informer is None:
        informer = EngineInformer(settings.config_dir)

    node_id = resolve_node_id(settings)
    lifecycle = LifecycleService(controller, tasks, NodeStateStore(settings.state_file), informer)
    announcer = build_announcer(settings, node_id, informer) if announce else None

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if announcer is not None:
            announcer.start()
        try:
            yield
        finally:
            if announcer is not None:
                announcer.stop()
            tasks.shutdown(wait=False)

    app = FastAPI(title="fleet-manager agent", version=__version__, lifespan=lifespan)
    install_error_handlers(app)

    package.init_router(lifecycle)
    engine.init_router(lifecycle)
    logs.init_router(
        LogsHandler(settings.log_dir, settings.log_entry_pattern, settings.log_entry_default)
    )
    health.init_router(node_id, str(controller.kind))

    app.include_router(package.router)
    app.include_router(engine.router)
    app.include_router(files.create_router("config", FileHandler(settings.config_dir)))
    app.include_router(files.create_router("connectors", FileHandler(settings.catalog_dir)))
    app.include_router(logs.router)
    app.include_router(health.router)

    app.state.lifecycle = lifecycle
    app.state.tasks = tasks
    logger.info("Agent %s configured for %s packages", node_id, controller.kind)
    return app
