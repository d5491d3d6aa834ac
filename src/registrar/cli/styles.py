"""Shared console and theme for the registrar commands.

Commands never name colors directly. They print through ``console`` using
the semantic styles below, and the configuration file can switch the whole
palette with ``cli.theme`` (``default`` or ``monochrome``).
"""

import sys
from dataclasses import dataclass

import yaml
from rich.console import Console
from rich.theme import Theme

from registrar.utils.logger import get_logger

logger = get_logger("cli")


# ============================================================================
# THEMES
# ============================================================================


@dataclass(frozen=True)
class ColorTheme:
    """Palette behind the semantic styles.

    ``error`` and ``warning`` read the same in every theme.
    """

    error: str = "#ff0000"
    warning: str = "#ffaa00"

    primary: str = "#4f8fba"
    success: str = "#6fb36f"
    path: str = "#9aa5ae"
    info: str = "#6fa8c9"

    secondary: str = "#888888"
    dim: str = "#666666"
    border: str = "#555555"

    def to_rich(self) -> Theme:
        return Theme(
            {
                "success": f"bold {self.success}",
                "error": f"bold {self.error}",
                "warning": f"bold {self.warning}",
                "info": f"bold {self.info}",
                "primary": f"bold {self.primary}",
                "secondary": self.secondary,
                "dim": self.dim,
                "label": "bold",
                "value": self.success,
                "path": self.path,
                "border": self.border,
            }
        )


THEMES = {
    "default": ColorTheme(),
    "monochrome": ColorTheme(
        primary="#ffffff", success="#ffffff", path="#aaaaaa", info="#cccccc"
    ),
}


def _make_console(theme: ColorTheme) -> Console:
    # Windows consoles need a forced terminal for the status glyphs
    if sys.platform == "win32":
        return Console(theme=theme.to_rich(), force_terminal=True, legacy_windows=False)
    return Console(theme=theme.to_rich())


console = _make_console(THEMES["default"])


def set_theme(theme: ColorTheme) -> None:
    """Replace the shared console with one using ``theme``."""
    global console
    console = _make_console(theme)


def load_theme_from_config(config_path: str | None = None) -> ColorTheme:
    from registrar.utils.config import get_config_value

    name = get_config_value("cli.theme", "default", config_path)
    if name not in THEMES:
        logger.warning(f"Unknown theme '{name}', using default")
        name = "default"
    return THEMES[name]


def initialize_theme_from_config(config_path: str | None = None) -> None:
    """Apply ``cli.theme``; an unreadable configuration keeps the default theme.

    The install command reports configuration errors itself, so they are only
    logged at debug level here.
    """
    try:
        set_theme(load_theme_from_config(config_path))
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.debug(f"Theme not loaded from configuration: {e}")
        set_theme(THEMES["default"])


# ============================================================================
# MARKUP HELPERS
# ============================================================================


class Styles:
    """Style names registered by :meth:`ColorTheme.to_rich`."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    DIM = "dim"
    PATH = "path"
    BORDER = "border"


# Status word -> style
STATUS_STYLES = {
    "installed": "success",
    "registry only": "warning",
    "ok": "success",
    "failed": "error",
}


class Messages:
    """Markup for one-line status output."""

    @staticmethod
    def success(text: str) -> str:
        return f"[success]✓ {text}[/success]"

    @staticmethod
    def error(text: str) -> str:
        return f"[error]✗ {text}[/error]"

    @staticmethod
    def info(text: str) -> str:
        return f"[info]ℹ️  {text}[/info]"

    @staticmethod
    def label_value(label: str, value: str) -> str:
        return f"[label]{label}:[/label] [value]{value}[/value]"

    @staticmethod
    def status(text: str) -> str:
        style = STATUS_STYLES.get(text, "dim")
        return f"[{style}]{text}[/{style}]"
