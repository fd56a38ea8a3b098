"""Tests for the fleet-manager CLI."""

import json
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from fleet_manager import __version__
from fleet_manager.cli.main import cli

SERVER_LOG = (
    "2020-01-01T00:00:00.000+0000\tERROR\tmain\tcom.facebook.presto.Server\tboom\n"
    "\tat com.facebook.presto.Server.main\n"
    "2020-01-02T00:00:00.000+0000\tINFO\tmain\tcom.facebook.presto.Server\tstarted\n"
    "2020-01-03T00:00:00.000+0000\tWARN\tmain\tcom.facebook.presto.Server\tslow\n"
)

NODES = """\
services:
  - id: s1
    nodeId: worker-1
    properties:
      http: http://10.0.0.6:8090
      worker: true
  - id: s2
    nodeId: coord-1
    properties:
      http: http://10.0.0.5:8090
      coordinator: true
"""


def runner() -> CliRunner:
    return CliRunner()


def _file_discovery_config(tmp_path: Path, nodes: str = NODES) -> Path:
    (tmp_path / "nodes.yaml").write_text(nodes, encoding="utf-8")
    config = tmp_path / "fleet-manager.yaml"
    config.write_text(
        "controller:\n"
        "  port: 9088\n"
        "  discovery: file\n"
        "  discovery_file: nodes.yaml\n",
        encoding="utf-8",
    )
    return config


def _server_log(tmp_path: Path) -> Path:
    log = tmp_path / "server.log"
    log.write_text(SERVER_LOG, encoding="utf-8")
    return log


# --- Root group ---


class TestRoot:
    def test_version(self):
        result = runner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_groups(self):
        result = runner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("init", "agent", "controller", "logs", "nodes"):
            assert name in result.output


# --- init command ---


class TestInitCommand:
    def test_creates_config(self, tmp_path: Path):
        result = runner().invoke(cli, ["init", str(tmp_path / "proj")])
        assert result.exit_code == 0
        assert "fleet-manager.yaml" in result.output
        text = (tmp_path / "proj" / "fleet-manager.yaml").read_text(encoding="utf-8")
        assert "discovery: embedded" in text

    def test_generated_config_loads(self, tmp_path: Path):
        from fleet_manager.config import load_config

        runner().invoke(cli, ["init", str(tmp_path)])
        cfg = load_config(tmp_path / "fleet-manager.yaml", environ={})
        assert cfg.agent.port == 8090
        assert cfg.agent.state_file == str((tmp_path / "node-state.json").resolve())
        assert cfg.controller.discovery == "embedded"

    def test_skips_existing(self, tmp_path: Path):
        (tmp_path / "fleet-manager.yaml").write_text("agent: {}\n", encoding="utf-8")
        result = runner().invoke(cli, ["init", str(tmp_path)])
        assert result.exit_code == 0
        assert "skip" in result.output
        assert (tmp_path / "fleet-manager.yaml").read_text(encoding="utf-8") == "agent: {}\n"


# --- logs show ---


class TestLogsShow:
    def test_all_entries(self, tmp_path: Path):
        log = _server_log(tmp_path)
        result = runner().invoke(cli, ["logs", "show", str(log), "-c", str(_file_discovery_config(tmp_path))])
        assert result.exit_code == 0
        assert "boom\n\tat com.facebook.presto.Server.main" in result.output
        assert "started" in result.output
        assert "slow" in result.output

    def test_level(self, tmp_path: Path):
        log = _server_log(tmp_path)
        config = _file_discovery_config(tmp_path)
        result = runner().invoke(cli, ["logs", "show", str(log), "-c", str(config), "--level", "error"])
        assert result.exit_code == 0
        assert "boom" in result.output
        assert "started" not in result.output

    def test_last_n(self, tmp_path: Path):
        log = _server_log(tmp_path)
        config = _file_discovery_config(tmp_path)
        result = runner().invoke(cli, ["logs", "show", str(log), "-c", str(config), "-n", "1"])
        assert result.exit_code == 0
        assert result.output.strip().endswith("slow")
        assert "boom" not in result.output

    def test_first_n_from_date(self, tmp_path: Path):
        log = _server_log(tmp_path)
        config = _file_discovery_config(tmp_path)
        result = runner().invoke(cli, [
            "logs", "show", str(log), "-c", str(config),
            "--from", "2020-01-01T12:00:00", "-n", "1",
        ])
        assert result.exit_code == 0
        assert "started" in result.output
        assert "slow" not in result.output

    def test_invalid_date(self, tmp_path: Path):
        log = _server_log(tmp_path)
        config = _file_discovery_config(tmp_path)
        result = runner().invoke(cli, ["logs", "show", str(log), "-c", str(config), "--to", "soon"])
        assert result.exit_code == 1
        assert "Invalid date" in result.output

    def test_missing_file(self, tmp_path: Path):
        result = runner().invoke(cli, ["logs", "show", str(tmp_path / "nope.log")])
        assert result.exit_code == 2


# --- nodes list ---


class TestNodesList:
    def test_table(self, tmp_path: Path):
        config = _file_discovery_config(tmp_path)
        result = runner().invoke(cli, ["nodes", "list", "-c", str(config)])
        assert result.exit_code == 0
        assert "coord-1" in result.output
        assert "worker-1" in result.output
        assert "2 agent(s) found." in result.output

    def test_json_output(self, tmp_path: Path):
        config = _file_discovery_config(tmp_path)
        result = runner().invoke(cli, ["nodes", "list", "-c", str(config), "--json-output"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data == [
            {"nodeId": "coord-1", "address": "http://10.0.0.5:8090", "coordinator": True, "worker": False},
            {"nodeId": "worker-1", "address": "http://10.0.0.6:8090", "coordinator": False, "worker": True},
        ]

    def test_empty(self, tmp_path: Path):
        config = _file_discovery_config(tmp_path, nodes="services: []\n")
        result = runner().invoke(cli, ["nodes", "list", "-c", str(config)])
        assert result.exit_code == 0
        assert "No agents found." in result.output

    def test_inconsistent_discovery(self, tmp_path: Path):
        config = _file_discovery_config(tmp_path, nodes="services: nope\n")
        result = runner().invoke(cli, ["nodes", "list", "-c", str(config)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_missing_config(self, tmp_path: Path):
        result = runner().invoke(cli, ["nodes", "list", "-c", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 1
        assert "Error loading config" in result.output


# --- serve commands ---


class TestServe:
    def test_controller_serve(self, tmp_path: Path):
        config = _file_discovery_config(tmp_path)
        with patch("uvicorn.run") as run:
            result = runner().invoke(cli, ["controller", "serve", "-c", str(config), "--host", "127.0.0.1"])
        assert result.exit_code == 0
        assert "file discovery" in result.output
        assert run.call_args.kwargs["host"] == "127.0.0.1"
        assert run.call_args.kwargs["port"] == 9088

    def test_controller_serve_bad_discovery(self, tmp_path: Path):
        config = tmp_path / "fleet-manager.yaml"
        config.write_text("controller:\n  discovery: http\n", encoding="utf-8")
        with patch("uvicorn.run") as run:
            result = runner().invoke(cli, ["controller", "serve", "-c", str(config)])
        assert result.exit_code == 1
        assert "discovery_uri" in result.output
        run.assert_not_called()

    def test_agent_serve(self, tmp_path: Path):
        config = tmp_path / "fleet-manager.yaml"
        config.write_text(
            "agent:\n"
            "  node_id: node-1\n"
            "  config_dir: etc\n"
            "  log_dir: log\n"
            "  state_file: node-state.json\n",
            encoding="utf-8",
        )
        with patch("uvicorn.run") as run:
            result = runner().invoke(cli, ["agent", "serve", "-c", str(config), "--port", "9999"])
        assert result.exit_code == 0
        assert "rpm" in result.output
        assert run.call_args.kwargs["port"] == 9999

    def test_agent_serve_bad_log_pattern(self, tmp_path: Path):
        config = tmp_path / "fleet-manager.yaml"
        config.write_text(
            "agent:\n"
            "  log_entry_pattern: '(?P<message>.*)'\n",
            encoding="utf-8",
        )
        with patch("uvicorn.run") as run:
            result = runner().invoke(cli, ["agent", "serve", "-c", str(config)])
        assert result.exit_code == 1
        run.assert_not_called()
