"""PackageController protocol: one implementation per package kind."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fleet_manager.models import PackageKind


@runtime_checkable
class PackageController(Protocol):
    """Installs, removes and controls the engine for one packaging format.

    Every method blocks until the underlying commands finish and raises
    :class:`~fleet_manager.errors.FleetManagerError` subclasses on failure.
    """

    @property
    def kind(self) -> PackageKind: ...

    @property
    def supports_skipping_dependencies(self) -> bool: ...

    def install(self, url: str, check_dependencies: bool = True) -> None: ...

    def uninstall(self, check_dependencies: bool = True) -> None: ...

    def upgrade(
        self, url: str, check_dependencies: bool = True, preserve_config: bool = True,
    ) -> None: ...

    def start(self) -> None: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    def restart(self) -> None: ...

    def get_version(self) -> str | None: ...

    def is_installed(self) -> bool: ...

    def is_running(self) -> bool: ...
