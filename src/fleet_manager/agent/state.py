"""Persisted per-node state: which package kind is installed here."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from fleet_manager.errors import FleetManagerError
from fleet_manager.models import NodeState, PackageKind

logger = logging.getLogger(__name__)


class NodeStateStore:
    """JSON-file-backed :class:`NodeState`, written atomically."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> NodeState:
        with self._lock:
            return self._load()

    def installed_kind(self) -> PackageKind | None:
        return self.load().package_kind

    def record_install(self, kind: PackageKind) -> NodeState:
        return self._save(NodeState(package_kind=kind, updated_at=datetime.now(tz=UTC)))

    def clear(self) -> NodeState:
        return self._save(NodeState(package_kind=None, updated_at=datetime.now(tz=UTC)))

    def _load(self) -> NodeState:
        if not self._path.is_file():
            return NodeState()
        try:
            return NodeState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise FleetManagerError(f"Corrupt node state file {self._path}: {e}") from e

    def _save(self, state: NodeState) -> NodeState:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(state.model_dump_json(indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        logger.info("Recorded installed package kind: %s", state.package_kind or "none")
        return state
