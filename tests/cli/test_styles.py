"""Tests for theme selection and status markup."""

import pytest

from registrar.cli import styles
from registrar.cli.styles import (
    THEMES,
    Messages,
    initialize_theme_from_config,
    load_theme_from_config,
)


@pytest.fixture(autouse=True)
def default_theme():
    yield
    styles.set_theme(THEMES["default"])


class TestThemeSelection:
    def test_default_without_config(self):
        assert load_theme_from_config() is THEMES["default"]

    def test_theme_from_config(self, tmp_path):
        (tmp_path / "registrar.yml").write_text("cli:\n  theme: monochrome\n")
        assert load_theme_from_config() is THEMES["monochrome"]

    def test_unknown_theme_falls_back(self, tmp_path):
        (tmp_path / "registrar.yml").write_text("cli:\n  theme: neon\n")
        assert load_theme_from_config() is THEMES["default"]

    def test_broken_config_keeps_default(self, tmp_path):
        (tmp_path / "registrar.yml").write_text("cli: [unclosed\n")
        initialize_theme_from_config()
        assert styles.console.get_style("primary").color.name == THEMES["default"].primary

    def test_set_theme_replaces_console(self):
        before = styles.console
        styles.set_theme(THEMES["monochrome"])
        assert styles.console is not before
        assert styles.console.get_style("primary").color.name == "#ffffff"


class TestMessages:
    @pytest.mark.parametrize(
        "status, style",
        [
            ("installed", "success"),
            ("registry only", "warning"),
            ("missing", "dim"),
            ("failed", "error"),
        ],
    )
    def test_status_markup(self, status, style):
        assert Messages.status(status) == f"[{style}]{status}[/{style}]"

    def test_label_value(self):
        assert Messages.label_value("Trace file", "x.log") == (
            "[label]Trace file:[/label] [value]x.log[/value]"
        )
