"""Package controllers, one per supported package kind.

Controllers: RpmPackageController, TarballPackageController.
"""

from __future__ import annotations

from fleet_manager.agent.commands import CommandExecutor
from fleet_manager.agent.deployer import ConfigDeployer
from fleet_manager.agent.packages.base import PackageController
from fleet_manager.agent.packages.rpm import RpmPackageController
from fleet_manager.agent.packages.tarball import TarballPackageController
from fleet_manager.config import AgentSettings
from fleet_manager.models import PackageKind

_CONTROLLERS: dict[PackageKind, type[RpmPackageController] | type[TarballPackageController]] = {
    PackageKind.RPM: RpmPackageController,
    PackageKind.TARBALL: TarballPackageController,
}


def build_package_controller(
    settings: AgentSettings, executor: CommandExecutor, deployer: ConfigDeployer,
) -> PackageController:
    """Pick the controller for ``settings.package_kind``."""
    try:
        cls = _CONTROLLERS[settings.package_kind]
    except KeyError as e:
        raise ValueError(f"Unsupported package kind: {settings.package_kind}") from e
    return cls(settings, executor, deployer)


__all__ = [
    "PackageController",
    "RpmPackageController",
    "TarballPackageController",
    "build_package_controller",
]
