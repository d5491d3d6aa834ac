"""Tests for main CLI entry point.

Tests the main CLI group, lazy command loading and the exit codes of main().
"""

from unittest import mock

import pytest
from click.testing import CliRunner

from registrar import __version__
from registrar.cli.main import LazyGroup, cli, main


@pytest.fixture
def runner():
    """Provide a Click CLI runner for testing."""
    return CliRunner()


class TestLazyGroup:
    """Test the LazyGroup command loading mechanism."""

    def test_list_commands(self):
        group = LazyGroup(name="test")
        assert group.list_commands(mock.Mock()) == ["install", "uninstall", "targets"]

    def test_get_command_imports_module(self):
        group = LazyGroup(name="test")
        with mock.patch("importlib.import_module") as mock_import:
            mock_import.return_value = mock.Mock(targets="targets-command")
            assert group.get_command(mock.Mock(), "targets") == "targets-command"
            mock_import.assert_called_once_with("registrar.cli.targets_cmd")

    def test_get_command_returns_none_for_invalid_command(self):
        group = LazyGroup(name="test")
        assert group.get_command(mock.Mock(), "nonexistent_command") is None

    @pytest.mark.parametrize("name", ["install", "uninstall", "targets"])
    def test_commands_load(self, name):
        group = LazyGroup(name="test")
        command = group.get_command(mock.Mock(), name)
        assert command.name == name


class TestCli:
    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("install", "uninstall", "targets"):
            assert name in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_install_help_lists_options(self, runner):
        result = runner.invoke(cli, ["install", "--help"])
        assert result.exit_code == 0
        assert "--simulate" in result.output
        assert "--install-flags" in result.output
        assert "--no-vs2013" in result.output

    def test_unknown_command(self, runner):
        result = runner.invoke(cli, ["frobnicate"])
        assert result.exit_code != 0


class TestMain:
    def test_keyboard_interrupt_exits_130(self, capsys):
        with mock.patch("registrar.cli.main.cli", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 130
        assert "Interrupted." in capsys.readouterr().err

    def test_unexpected_error_exits_1(self, capsys):
        with mock.patch("registrar.cli.main.cli", side_effect=RuntimeError("boom")):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1
        assert "Error: boom" in capsys.readouterr().err
