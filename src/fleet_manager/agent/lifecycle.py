"""Engine lifecycle rules behind the agent's ``/package`` and ``/engine`` routes.

Long operations (install, upgrade, uninstall, start, restart) are checked
synchronously, then scheduled on the :class:`TaskRunner` and reported as
``202 Accepted``. Stop and status run inline.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fleet_manager.agent.files import validate_url
from fleet_manager.agent.informer import EngineInformer
from fleet_manager.agent.packages.base import PackageController
from fleet_manager.agent.state import NodeStateStore
from fleet_manager.agent.tasks import TaskHandle, TaskRunner
from fleet_manager.errors import ClientInputError, FleetManagerError, ResourceNotFound, StateConflict
from fleet_manager.models import EngineStatus, StopType

logger = logging.getLogger(__name__)

ACCEPTED = 202
OK = 200
CHECK_BACK = "To verify that the operation succeeded, check back later using the status API."


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a lifecycle request, ready to become an HTTP response."""

    status_code: int
    message: str
    task: TaskHandle | None = None


class LifecycleService:
    """Applies install/upgrade/uninstall/start/stop rules for one node."""

    def __init__(
        self,
        controller: PackageController,
        tasks: TaskRunner,
        state: NodeStateStore,
        informer: EngineInformer,
    ) -> None:
        self._controller = controller
        self._tasks = tasks
        self._state = state
        self._informer = informer

    @property
    def controller(self) -> PackageController:
        return self._controller

    def install(self, url: str, check_dependencies: bool = True) -> OperationResult:
        url = validate_url(url)
        self._check_dependency_option(check_dependencies, "installation")
        if self._controller.is_installed():
            logger.error("Engine is already installed")
            raise StateConflict("Engine is already installed")

        def _install() -> None:
            self._controller.install(url, check_dependencies)
            self._state.record_install(self._controller.kind)

        return self._schedule("install", _install, "Engine is being installed.")

    def uninstall(self, check_dependencies: bool = True, force: bool = False) -> OperationResult:
        self._check_recorded_kind()
        self._check_dependency_option(check_dependencies, "uninstall")
        self._require_installed()
        self._stop_if_running(force, "uninstall")

        def _uninstall() -> None:
            self._controller.uninstall(check_dependencies)
            self._state.clear()

        return self._schedule("uninstall", _uninstall, "Engine is being uninstalled.")

    def upgrade(
        self,
        url: str,
        check_dependencies: bool = True,
        preserve_config: bool = True,
        force: bool = False,
    ) -> OperationResult:
        url = validate_url(url)
        self._check_recorded_kind()
        self._check_dependency_option(check_dependencies, "upgrade")
        self._stop_if_running(force, "upgrade")

        def _upgrade() -> None:
            self._controller.upgrade(url, check_dependencies, preserve_config)
            self._state.record_install(self._controller.kind)

        return self._schedule("upgrade", _upgrade, "Engine is being upgraded.")

    def start(self) -> OperationResult:
        self._require_installed()
        return self._schedule("start", self._controller.start, "Engine is being started.")

    def restart(self) -> OperationResult:
        self._require_installed()
        return self._schedule("restart", self._controller.restart, "Engine is being restarted.")

    def stop(self, stop_type: StopType = StopType.GRACEFUL) -> OperationResult:
        self._require_installed()
        if not self._controller.is_running():
            logger.info("Engine is not running")
            return OperationResult(OK, "Engine is not running")

        if stop_type is StopType.GRACEFUL:
            if self._informer.is_coordinator():
                logger.error("Coordinator can't be gracefully stopped")
                raise StateConflict("Coordinator can't be gracefully stopped")
            self._informer.graceful_shutdown()
        elif stop_type is StopType.KILL:
            self._controller.kill()
        else:
            self._controller.terminate()
        logger.info("Engine stopped (%s)", stop_type)
        return OperationResult(OK, "Engine successfully stopped")

    def status(self) -> EngineStatus:
        if not self._controller.is_installed():
            return EngineStatus(installed=False)
        version = self._controller.get_version()
        try:
            info = self._informer.info()
            state = self._informer.state()
        except (OSError, FleetManagerError) as e:
            logger.info("Engine is not running: %s", e)
            return EngineStatus(installed=True, running=False, version=version)

        details: dict[str, Any] = dict(info) if isinstance(info, dict) else {}
        node_version = details.pop("nodeVersion", None)
        if isinstance(node_version, dict) and node_version.get("version"):
            version = str(node_version["version"])
        for key in ("installed", "running", "version", "state"):
            details.pop(key, None)
        return EngineStatus(installed=True, running=True, version=version, state=state, **details)

    def _schedule(self, name: str, fn: Callable[[], None], message: str) -> OperationResult:
        handle = self._tasks.submit(name, fn)
        return OperationResult(ACCEPTED, f"{message}\r\n{CHECK_BACK}", task=handle)

    def _require_installed(self) -> None:
        if not self._controller.is_installed():
            logger.error("Engine is not installed")
            raise ResourceNotFound("Engine is not installed")

    def _stop_if_running(self, force: bool, operation: str) -> None:
        if not self._controller.is_running():
            return
        if not force:
            logger.error("Engine is running; stop it before %s", operation)
            raise StateConflict(f"Engine is running. Stop the engine before beginning {operation}.")
        logger.warning("Engine is running; it will be forcibly stopped before %s", operation)
        self._controller.terminate()

    def _check_recorded_kind(self) -> None:
        recorded = self._state.installed_kind()
        if recorded is not None and recorded != self._controller.kind:
            raise ClientInputError(
                f"Mismatched package type: installed as {recorded}, "
                f"agent configured for {self._controller.kind}"
            )

    def _check_dependency_option(self, check_dependencies: bool, operation: str) -> None:
        if not check_dependencies and not self._controller.supports_skipping_dependencies:
            raise ClientInputError(
                f"Unsupported parameter 'checkDependencies' for {self._controller.kind} {operation}"
            )
