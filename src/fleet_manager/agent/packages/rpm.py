"""RPM-packaged engine, controlled through the system service."""

from __future__ import annotations

import logging
from pathlib import Path

from fleet_manager.agent.commands import CommandExecutor, require_success
from fleet_manager.agent.deployer import ConfigDeployer
from fleet_manager.agent.files import download_file
from fleet_manager.config import AgentSettings
from fleet_manager.errors import ExternalProcessFailure
from fleet_manager.models import PackageKind

logger = logging.getLogger(__name__)

SERVICE_STOPPED_EXIT_CODE = 3


class RpmPackageController:
    """Installs with ``rpm`` and controls the engine with ``service``."""

    kind = PackageKind.RPM
    supports_skipping_dependencies = True

    def __init__(
        self, settings: AgentSettings, executor: CommandExecutor, deployer: ConfigDeployer,
    ) -> None:
        self._package = settings.package_name
        self._service = settings.service_name
        self._launcher = settings.launcher
        self._config_dir = Path(settings.config_dir)
        self._catalog_dir = Path(settings.catalog_dir)
        self._data_dir = Path(settings.data_dir)
        self._plugin_dir = Path(settings.plugin_dir)
        self._log_dir = Path(settings.log_dir)
        self._executor = executor
        self._deployer = deployer

    def install(self, url: str, check_dependencies: bool = True) -> None:
        rpm_file = self._fetch_rpm(url)
        try:
            require_success(
                self._executor.run_long("sudo", "rpm", "-iv", *_nodeps(check_dependencies), str(rpm_file)),
                "Failed to install engine",
            )
            self._deploy_defaults()
            logger.info("Installed %s from %s", self._package, url)
        finally:
            _delete_temp(rpm_file)

    def uninstall(self, check_dependencies: bool = True) -> None:
        require_success(
            self._executor.run_long("sudo", "rpm", "-e", *_nodeps(check_dependencies), self._package),
            f"Failed to uninstall package: {self._package}",
        )
        logger.info("Uninstalled %s", self._package)

    def upgrade(self, url: str, check_dependencies: bool = True, preserve_config: bool = True) -> None:
        rpm_file = self._fetch_rpm(url)
        try:
            if preserve_config:
                backup = self._deployer.backup_directory(self._config_dir)
                try:
                    self._upgrade_package(rpm_file, check_dependencies)
                    self._deployer.restore_directory(backup, self._config_dir)
                finally:
                    _delete_temp(backup)
            else:
                self._upgrade_package(rpm_file, check_dependencies)
                self._deploy_defaults()
        finally:
            _delete_temp(rpm_file)
        logger.info("Upgraded %s from %s", self._package, url)

    def start(self) -> None:
        require_success(self._executor.run_long("service", self._service, "start"), "Failed to start engine")

    def terminate(self) -> None:
        require_success(self._executor.run("service", self._service, "stop"), "Failed to stop engine")

    def kill(self) -> None:
        self._executor.run("sudo", self._launcher, "kill")
        status = self._executor.run("service", self._service, "status")
        if status.exit_code != SERVICE_STOPPED_EXIT_CODE:
            raise ExternalProcessFailure("Failed to kill engine", status.exit_code)

    def restart(self) -> None:
        require_success(self._executor.run_long("service", self._service, "restart"), "Failed to restart engine")

    def get_version(self) -> str | None:
        result = self._executor.run("rpm", "-q", "--qf", "%{VERSION}", self._package)
        require_success(result, "Failed to retrieve engine version")
        return result.output.strip()

    def is_installed(self) -> bool:
        return self._executor.run("rpm", "-q", self._package).ok

    def is_running(self) -> bool:
        return self.is_installed() and self._executor.run("service", self._service, "status").ok

    def _fetch_rpm(self, url: str) -> Path:
        rpm_file = download_file(url, suffix=".rpm")
        result = self._executor.run("rpm", "-Kv", "--nosignature", str(rpm_file))
        if not result.ok:
            _delete_temp(rpm_file)
            raise ExternalProcessFailure("Corrupted RPM", result.exit_code)
        return rpm_file

    def _upgrade_package(self, rpm_file: Path, check_dependencies: bool) -> None:
        require_success(
            self._executor.run_long("sudo", "rpm", "-U", *_nodeps(check_dependencies), str(rpm_file)),
            "Failed to upgrade engine",
        )

    def _deploy_defaults(self) -> None:
        self._deployer.deploy_default_config(
            self._config_dir, self._catalog_dir, self._data_dir, self._plugin_dir, self._log_dir,
        )
        self._deployer.deploy_default_connectors(self._catalog_dir)


def _nodeps(check_dependencies: bool) -> tuple[str, ...]:
    return () if check_dependencies else ("--nodeps",)


def _delete_temp(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Failed to delete the temporary file %s: %s", path, e)
