"""Tests for CommandExecutor, TaskRunner and NodeStateStore.

All subprocess.run calls are mocked; no external commands are executed.
"""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from fleet_manager.agent.commands import CommandExecutor, require_success
from fleet_manager.agent.state import NodeStateStore
from fleet_manager.agent.tasks import TaskRunner
from fleet_manager.errors import ExternalProcessFailure, FleetManagerError
from fleet_manager.models import CommandResult, PackageKind

RUN = "fleet_manager.agent.commands.subprocess.run"


def _completed(returncode: int = 0, stdout: str = "") -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.stdout = stdout
    return proc


# --- CommandExecutor ---


class TestCommandExecutor:
    def test_short_timeout(self) -> None:
        with patch(RUN, return_value=_completed(stdout="3.1\n")) as run:
            result = CommandExecutor(short_timeout=5, long_timeout=50).run("rpm", "-q", "presto")
        assert result == CommandResult(exit_code=0, output="3.1\n")
        args, kwargs = run.call_args
        assert args[0] == ["rpm", "-q", "presto"]
        assert kwargs["timeout"] == 5
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["check"] is False

    def test_long_timeout(self) -> None:
        with patch(RUN, return_value=_completed()) as run:
            CommandExecutor(short_timeout=5, long_timeout=50).run_long("sudo", "rpm", "-iv", "x")
        assert run.call_args.kwargs["timeout"] == 50

    def test_nonzero_exit_is_returned(self) -> None:
        with patch(RUN, return_value=_completed(returncode=3, stdout="stopped")):
            result = CommandExecutor().run("service", "presto", "status")
        assert result.exit_code == 3
        assert not result.ok

    def test_timeout_raises(self) -> None:
        with patch(RUN, side_effect=subprocess.TimeoutExpired(["sleep"], 1)):
            with pytest.raises(ExternalProcessFailure, match="timed out"):
                CommandExecutor().run("sleep", "100")

    def test_missing_binary_raises(self) -> None:
        with patch(RUN, side_effect=FileNotFoundError("no such file")):
            with pytest.raises(ExternalProcessFailure, match="Error executing command"):
                CommandExecutor().run("nope")

    def test_empty_command(self) -> None:
        with pytest.raises(ValueError):
            CommandExecutor().run()

    def test_none_stdout(self) -> None:
        with patch(RUN, return_value=_completed(stdout=None)):
            assert CommandExecutor().run("true").output == ""


class TestRequireSuccess:
    def test_success_passes_through(self) -> None:
        result = CommandResult(0, "ok")
        assert require_success(result, "unused") is result

    def test_failure_carries_exit_code(self) -> None:
        with pytest.raises(ExternalProcessFailure) as exc_info:
            require_success(CommandResult(1, "error"), "Failed to install presto")
        assert exc_info.value.exit_code == 1
        assert str(exc_info.value) == "Failed to install presto (exit code 1)"
        assert exc_info.value.status_code == 500


# --- TaskRunner ---


class TestTaskRunner:
    def test_success(self) -> None:
        runner = TaskRunner()
        handle = runner.submit("install", lambda: 42)
        assert runner.wait(handle, timeout=5) is None
        assert handle.wait(timeout=5) == 42
        assert handle.done
        assert handle.error is None
        runner.shutdown()

    def test_failure_kept_on_handle(self) -> None:
        runner = TaskRunner()

        def fail() -> None:
            raise ExternalProcessFailure("Failed to install presto", 1)

        handle = runner.submit("install", fail)
        error = runner.wait(handle, timeout=5)
        assert isinstance(error, ExternalProcessFailure)
        assert handle.error is error
        with pytest.raises(ExternalProcessFailure):
            handle.wait(timeout=5)
        runner.shutdown()

    def test_unexpected_error(self) -> None:
        runner = TaskRunner()
        handle = runner.submit("upgrade", lambda: 1 / 0)
        assert isinstance(runner.wait(handle, timeout=5), ZeroDivisionError)
        runner.shutdown()

    def test_history(self) -> None:
        runner = TaskRunner()
        gate = threading.Event()
        first = runner.submit("a", gate.wait)
        second = runner.submit("b", lambda: None)
        assert [t.name for t in runner.tasks()] == ["a", "b"]
        assert not first.done
        gate.set()
        runner.wait(first, timeout=5)
        runner.wait(second, timeout=5)
        runner.shutdown()

    def test_concurrent_tasks_do_not_queue(self) -> None:
        runner = TaskRunner()
        barrier = threading.Barrier(6, timeout=5)
        handles = [runner.submit(f"task-{i}", barrier.wait) for i in range(6)]
        assert [runner.wait(h, timeout=10) for h in handles] == [None] * 6
        runner.shutdown()


# --- NodeStateStore ---


class TestNodeStateStore:
    def test_missing_file_is_empty_state(self, tmp_path: Path) -> None:
        store = NodeStateStore(tmp_path / "state.json")
        assert store.installed_kind() is None

    def test_record_and_clear(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "state.json"
        store = NodeStateStore(path)
        store.record_install(PackageKind.TARBALL)
        assert path.is_file()
        assert NodeStateStore(path).installed_kind() is PackageKind.TARBALL
        assert store.load().updated_at is not None

        store.clear()
        assert store.installed_kind() is None
        assert not path.with_suffix(".tmp").exists()

    def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        path.write_text('{"package_kind": "deb"}', encoding="utf-8")
        with pytest.raises(FleetManagerError, match="Corrupt"):
            NodeStateStore(path).load()
