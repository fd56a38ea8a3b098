"""Tarball-packaged engine, controlled by invoking its launcher directly."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from fleet_manager.agent.commands import CommandExecutor, require_success
from fleet_manager.agent.deployer import ConfigDeployer
from fleet_manager.agent.files import download_file, set_property
from fleet_manager.config import AgentSettings
from fleet_manager.errors import ClientInputError, FleetManagerError
from fleet_manager.models import PackageKind

logger = logging.getLogger(__name__)


class TarballPackageController:
    """Untars the engine into ``installation_dir`` and runs ``bin/launcher``.

    The engine home is the single top-level directory inside the tarball;
    it is located again on every call so an agent restart doesn't lose it.
    """

    kind = PackageKind.TARBALL
    supports_skipping_dependencies = False

    def __init__(
        self, settings: AgentSettings, executor: CommandExecutor, deployer: ConfigDeployer,
    ) -> None:
        self._installation_dir = Path(settings.installation_dir)
        self._config_dir = Path(settings.config_dir)
        self._catalog_dir = Path(settings.catalog_dir)
        self._data_dir = Path(settings.data_dir)
        self._log_dir = Path(settings.log_dir)
        self._launcher_properties = (
            Path(settings.launcher_properties) if settings.launcher_properties else None
        )
        self._executor = executor
        self._deployer = deployer

    def install(self, url: str, check_dependencies: bool = True) -> None:
        _require_dependency_check(check_dependencies, "installation")
        archive = download_file(url, suffix=".tar.gz")
        try:
            self._untar(archive)
            self._deploy_defaults()
        finally:
            archive.unlink(missing_ok=True)
        logger.info("Installed engine tarball from %s into %s", url, self._installation_dir)

    def uninstall(self, check_dependencies: bool = True) -> None:
        _require_dependency_check(check_dependencies, "uninstall")
        for directory in (self._installation_dir, self._data_dir, self._catalog_dir, self._config_dir):
            try:
                shutil.rmtree(directory)
            except FileNotFoundError:
                continue
            except OSError as e:
                raise FleetManagerError(f"Failed to uninstall engine: {e}") from e
        logger.info("Uninstalled engine from %s", self._installation_dir)

    def upgrade(self, url: str, check_dependencies: bool = True, preserve_config: bool = True) -> None:
        _require_dependency_check(check_dependencies, "upgrade")
        archive = download_file(url, suffix=".tar.gz")
        try:
            if preserve_config:
                backup = self._deployer.backup_directory(self._config_dir)
                try:
                    self.uninstall()
                    self._untar(archive)
                    self._deployer.restore_directory(backup, self._config_dir)
                    set_property(
                        self._config_dir / "node.properties", "plugin.dir", str(self._plugin_dir()),
                    )
                finally:
                    backup.unlink(missing_ok=True)
            else:
                self.uninstall()
                self._untar(archive)
                self._deploy_defaults()
        finally:
            archive.unlink(missing_ok=True)
        logger.info("Upgraded engine tarball from %s", url)

    def start(self) -> None:
        self._launch("start")

    def terminate(self) -> None:
        self._launch("stop")

    def kill(self) -> None:
        self._launch("kill")

    def restart(self) -> None:
        self._launch("restart")

    def get_version(self) -> str | None:
        return None

    def is_installed(self) -> bool:
        home = self._find_home()
        return home is not None and (home / "bin" / "launcher").is_file()

    def is_running(self) -> bool:
        if not self.is_installed():
            return False
        return self._executor.run(*self.launcher_command("status")).ok

    def launcher_command(self, action: str) -> list[str]:
        home = self._engine_home()
        launcher_properties = self._launcher_properties or home / "bin" / "launcher.properties"
        return [
            str(home / "bin" / "launcher"),
            action,
            "--data-dir", str(self._data_dir),
            "--launcher-config", str(launcher_properties),
            "--node-config", str(self._config_dir / "node.properties"),
            "--jvm-config", str(self._config_dir / "jvm.config"),
            "--config", str(self._config_dir / "config.properties"),
            "--launcher-log-file", str(self._log_dir / "launcher.log"),
            "--server-log-file", str(self._log_dir / "server.log"),
        ]

    def _launch(self, action: str) -> None:
        if not self.is_installed():
            raise FleetManagerError("Engine is not installed")
        runner = self._executor.run_long if action in ("start", "restart") else self._executor.run
        require_success(runner(*self.launcher_command(action)), f"Failed to {action} engine")

    def _untar(self, archive: Path) -> None:
        if self._installation_dir.is_dir():
            raise FleetManagerError(f"Directory '{self._installation_dir}' already exists")
        try:
            self._installation_dir.mkdir(parents=True)
            self._config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FleetManagerError(f"Failed to create directory: {e}") from e
        require_success(
            self._executor.run_long("tar", "-xzf", str(archive), "-C", str(self._installation_dir)),
            "Failed to install engine",
        )

    def _find_home(self) -> Path | None:
        if not self._installation_dir.is_dir():
            return None
        dirs = [p for p in self._installation_dir.iterdir() if p.is_dir()]
        if len(dirs) > 1:
            raise FleetManagerError(f"Multiple directories within '{self._installation_dir}'")
        return dirs[0] if dirs else None

    def _engine_home(self) -> Path:
        home = self._find_home()
        if home is None:
            raise FleetManagerError(f"No engine directory within '{self._installation_dir}'")
        return home

    def _plugin_dir(self) -> Path:
        return self._engine_home() / "plugin"

    def _deploy_defaults(self) -> None:
        self._deployer.deploy_default_config(
            self._config_dir, self._catalog_dir, self._data_dir, self._plugin_dir(), self._log_dir,
        )
        self._deployer.deploy_default_connectors(self._catalog_dir)


def _require_dependency_check(check_dependencies: bool, operation: str) -> None:
    if not check_dependencies:
        raise ClientInputError(f"Unsupported parameter 'checkDependencies' for tarball {operation}")
