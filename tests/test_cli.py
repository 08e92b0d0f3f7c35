"""Tests for patrol.cli module.

Tests cover:
- CLI argument parsing
- resolve command (table, JSON, task creation)
- templates command
- config command
- Logging setup
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.table import Table

from patrol.cli import create_parser, run_cli, setup_logging
from patrol.core.intent.templates import TASK_TEMPLATES
from patrol.core.tasks import TaskApiError

CREATE_TEXT = "帮我创建巡检任务，起点：东门，距离：800米，执行人：巡检机器人"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove PATROL_* variables that would leak into settings."""
    for key in list(os.environ):
        if key.startswith("PATROL_"):
            monkeypatch.delenv(key)


@pytest.fixture
def console():
    """Replace the module console so output can be inspected."""
    with patch("patrol.cli.console") as mock_console:
        yield mock_console


def _run_resolve(project: Path, text: str, *flags: str) -> int:
    return run_cli(["--project", str(project), "resolve", text, *flags])


def _json_output(console: MagicMock) -> dict:
    console.print_json.assert_called_once()
    return console.print_json.call_args.kwargs["data"]


# =============================================================================
# Parser Tests
# =============================================================================


class TestParser:
    """Tests for argument parser."""

    def test_create_parser(self):
        """Test parser creation."""
        parser = create_parser()
        assert parser.prog == "patrol"

    def test_parser_resolve(self):
        """Test parsing 'resolve' command."""
        args = create_parser().parse_args(["resolve", "你好"])

        assert args.command == "resolve"
        assert args.text == "你好"
        assert args.offline is False
        assert args.json is False
        assert args.create is False
        assert hasattr(args, "func")

    def test_parser_resolve_flags(self):
        """Test parsing 'resolve' flags."""
        args = create_parser().parse_args(["resolve", "你好", "--offline", "--json", "--create"])

        assert args.offline is True
        assert args.json is True
        assert args.create is True

    def test_parser_project_path(self):
        """Test --project is a global option."""
        args = create_parser().parse_args(["--project", "/tmp/site", "templates"])

        assert args.project_path == "/tmp/site"
        assert args.command == "templates"

    def test_parser_config_save(self):
        """Test parsing 'config --save'."""
        args = create_parser().parse_args(["config", "--save"])

        assert args.command == "config"
        assert args.save is True

    def test_no_command_prints_help(self, capsys):
        """Test running without a command prints help."""
        assert run_cli([]) == 0
        assert "resolve" in capsys.readouterr().out


# =============================================================================
# resolve Tests
# =============================================================================


class TestResolveCommand:
    """Tests for the resolve command."""

    def test_offline_json(self, tmp_path: Path, console):
        """Test offline resolution printed as JSON."""
        result = _run_resolve(tmp_path, CREATE_TEXT, "--offline", "--json")

        assert result == 0
        data = _json_output(console)
        assert data["intent"] == "CreateTask"
        assert data["shouldCreateTask"] is True
        assert data["params"]["taskTrip"] == 800
        assert data["params"]["startPos"] == "东门"
        assert "createdTask" not in data

    def test_offline_table(self, tmp_path: Path, console):
        """Test offline resolution printed as a table and reply."""
        result = _run_resolve(tmp_path, "你好", "--offline")

        assert result == 0
        printed = [c.args[0] for c in console.print.call_args_list]
        assert any(isinstance(p, Table) for p in printed)

    def test_create_task(self, tmp_path: Path, console):
        """Test --create posts an actionable result."""
        api = AsyncMock()
        api.create_task = AsyncMock(return_value={"id": 7})

        with patch("patrol.cli.TaskApiClient") as MockApi:
            MockApi.return_value.__aenter__.return_value = api
            MockApi.return_value.__aexit__.return_value = False
            result = _run_resolve(tmp_path, CREATE_TEXT, "--offline", "--json", "--create")

        assert result == 0
        MockApi.assert_called_once_with("http://localhost:8080", 30.0)
        params = api.create_task.await_args.args[0]
        assert params.task_trip == 800
        assert _json_output(console)["createdTask"] == {"id": 7}

    def test_no_create_without_flag(self, tmp_path: Path, console):
        """Test an actionable result is not posted without --create."""
        with patch("patrol.cli.TaskApiClient") as MockApi:
            result = _run_resolve(tmp_path, CREATE_TEXT, "--offline", "--json")

        assert result == 0
        MockApi.assert_not_called()

    def test_create_skipped_when_gated(self, tmp_path: Path, console):
        """Test --create does nothing when the policy withholds creation."""
        with patch("patrol.cli.TaskApiClient") as MockApi:
            result = _run_resolve(tmp_path, "设备维修", "--offline", "--json", "--create")

        assert result == 0
        MockApi.assert_not_called()
        data = _json_output(console)
        assert data["shouldCreateTask"] is False
        assert "createdTask" not in data

    def test_create_skipped_when_not_actionable(self, tmp_path: Path, console):
        """Test --create does nothing for a greeting."""
        with patch("patrol.cli.TaskApiClient") as MockApi:
            result = _run_resolve(tmp_path, "你好", "--offline", "--create")

        assert result == 0
        MockApi.assert_not_called()

    def test_create_failure(self, tmp_path: Path, console):
        """Test a task service failure gives exit code 1."""
        api = AsyncMock()
        api.create_task = AsyncMock(side_effect=TaskApiError("执行人不存在"))

        with patch("patrol.cli.TaskApiClient") as MockApi:
            MockApi.return_value.__aenter__.return_value = api
            MockApi.return_value.__aexit__.return_value = False
            result = _run_resolve(tmp_path, CREATE_TEXT, "--offline", "--create")

        assert result == 1

    def test_unexpected_error(self, tmp_path: Path, console):
        """Test unexpected errors are reported with exit code 1."""
        with patch("patrol.cli.AppConfig.load", side_effect=RuntimeError("boom")):
            result = _run_resolve(tmp_path, "你好", "--offline")

        assert result == 1


# =============================================================================
# templates / config Tests
# =============================================================================


class TestTemplatesCommand:
    """Tests for the templates command."""

    def test_lists_all_templates(self, console):
        """Test every template gets a row."""
        assert run_cli(["templates"]) == 0

        table = console.print.call_args.args[0]
        assert isinstance(table, Table)
        assert table.row_count == len(TASK_TEMPLATES)


class TestConfigCommand:
    """Tests for the config command."""

    def test_show(self, tmp_path: Path, console):
        """Test config is shown without writing a file."""
        assert run_cli(["--project", str(tmp_path), "config"]) == 0
        assert not (tmp_path / ".patrol" / "config.yaml").exists()

    def test_save(self, tmp_path: Path, console):
        """Test --save writes config.yaml."""
        assert run_cli(["--project", str(tmp_path), "config", "--save"]) == 0
        assert (tmp_path / ".patrol" / "config.yaml").exists()


# =============================================================================
# Logging Tests
# =============================================================================


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_rotating_file_handler(self, tmp_path: Path):
        """Test a rotating handler is attached to the root logger."""
        root = logging.getLogger()
        before = list(root.handlers)
        log_dir = tmp_path / "logs"

        try:
            log_file = setup_logging(log_dir)

            assert log_file == log_dir / "patrol.log"
            assert log_dir.stat().st_mode & 0o777 == 0o700
            added = [h for h in root.handlers if h not in before]
            assert len(added) == 1
            assert isinstance(added[0], RotatingFileHandler)
            assert added[0].maxBytes == 5 * 1024 * 1024
            assert added[0].backupCount == 3
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
                    handler.close()

    def test_debug_level(self, tmp_path: Path, monkeypatch):
        """Test PATROL_DEBUG switches to DEBUG level."""
        monkeypatch.setenv("PATROL_DEBUG", "1")
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level

        try:
            setup_logging(tmp_path / "logs")
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(level)
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
                    handler.close()
