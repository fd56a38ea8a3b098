"""Default engine configuration and config directory backup/restore."""

from __future__ import annotations

import logging
import shutil
import tempfile
import uuid
from pathlib import Path

from fleet_manager.agent.commands import CommandExecutor
from fleet_manager.agent.files import set_property, write_properties
from fleet_manager.errors import ExternalProcessFailure, FleetManagerError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PROPERTIES = {
    "coordinator": "false",
    "http-server.http.port": "8080",
    "query.max-memory": "50GB",
    "query.max-memory-per-node": "8GB",
}

DEFAULT_JVM_CONFIG = (
    "-server",
    "-Xmx16G",
    "-XX:+UseG1GC",
    "-XX:G1HeapRegionSize=32M",
    "-XX:+ExplicitGCInvokesConcurrent",
    "-XX:+HeapDumpOnOutOfMemoryError",
    "-XX:+ExitOnOutOfMemoryError",
    "-XX:ReservedCodeCacheSize=512M",
)

DEFAULT_CONNECTORS = {"tpch.properties": {"connector.name": "tpch"}}


class ConfigDeployer:
    """Writes default configuration and backs up/restores config directories.

    If *defaults_config_dir* (or *defaults_catalog_dir*) exists it is copied
    as-is; otherwise a minimal single-node worker configuration is generated.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        environment: str = "production",
        defaults_config_dir: str | Path | None = None,
        defaults_catalog_dir: str | Path | None = None,
    ) -> None:
        self._executor = executor
        self._environment = environment
        self._defaults_config_dir = Path(defaults_config_dir) if defaults_config_dir else None
        self._defaults_catalog_dir = Path(defaults_catalog_dir) if defaults_catalog_dir else None

    def backup_directory(self, directory: Path) -> Path:
        """Tar *directory* into a temp ``.tar.gz``; the caller deletes it."""
        with tempfile.NamedTemporaryFile(
            prefix="fleet-manager-config-", suffix=".tar.gz", delete=False,
        ) as tmp:
            archive = Path(tmp.name)
        result = self._executor.run("tar", "-czf", str(archive), "-C", str(directory), ".")
        if not result.ok:
            archive.unlink(missing_ok=True)
            raise ExternalProcessFailure("Failed to tar config files", result.exit_code)
        logger.debug("Backed up %s to %s", directory, archive)
        return archive

    def restore_directory(self, archive: Path, directory: Path) -> None:
        """Replace the contents of *directory* with *archive*."""
        _clear_directory(directory)
        result = self._executor.run("tar", "-xzf", str(archive), "-C", str(directory))
        if not result.ok:
            raise ExternalProcessFailure("Failed to deploy config files", result.exit_code)
        logger.debug("Restored %s from %s", directory, archive)

    def deploy_default_config(
        self, config_dir: Path, catalog_dir: Path, data_dir: Path, plugin_dir: Path, log_dir: Path,
    ) -> None:
        try:
            if self._defaults_config_dir is not None and self._defaults_config_dir.is_dir():
                shutil.copytree(self._defaults_config_dir, config_dir, dirs_exist_ok=True)
                set_property(config_dir / "node.properties", "node.id", str(uuid.uuid4()))
                logger.info("Copied default configuration from %s", self._defaults_config_dir)
                return

            _clear_directory(config_dir)
            write_properties(
                config_dir / "config.properties",
                DEFAULT_CONFIG_PROPERTIES,
                comment="single node worker config",
            )
            write_properties(
                config_dir / "node.properties",
                {
                    "node.environment": self._environment,
                    "node.id": str(uuid.uuid4()),
                    "node.data-dir": str(data_dir),
                    "catalog.config-dir": str(catalog_dir),
                    "plugin.dir": str(plugin_dir),
                    "node.server-log-file": str(log_dir / "server.log"),
                    "node.launcher-log-file": str(log_dir / "launcher.log"),
                },
            )
            (config_dir / "jvm.config").write_text("\n".join(DEFAULT_JVM_CONFIG) + "\n", encoding="utf-8")
        except OSError as e:
            raise FleetManagerError(f"Failed to add config files: {e}") from e
        logger.info("Generated default configuration in %s", config_dir)

    def deploy_default_connectors(self, catalog_dir: Path) -> None:
        try:
            if self._defaults_catalog_dir is not None and self._defaults_catalog_dir.is_dir():
                shutil.copytree(self._defaults_catalog_dir, catalog_dir, dirs_exist_ok=True)
                logger.info("Copied default connectors from %s", self._defaults_catalog_dir)
                return
            catalog_dir.mkdir(parents=True, exist_ok=True)
            for name, props in DEFAULT_CONNECTORS.items():
                target = catalog_dir / name
                if not target.exists():
                    write_properties(target, props)
        except OSError as e:
            raise FleetManagerError(f"Failed to add connectors: {e}") from e
        logger.info("Deployed default connectors to %s", catalog_dir)


def _clear_directory(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for child in directory.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
