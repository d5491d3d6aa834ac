"""
Component Logger

Every module logs through a :class:`ComponentLogger` named after its
component. Records go to one Rich handler on stderr, colored per component
(``logging.colors.<component>`` in the configuration overrides the default),
and optionally to a plain-text trace file that also keeps debug records.

Usage:
    logger = get_logger("engine")
    logger.key_info("Processing assembly folders")
    logger.debug("Target not installed, skipping")
    logger.success("Success.")
    logger.timing("assembly_folders took 0.02s")
"""

import logging
import os
import tempfile
from pathlib import Path

import yaml
from rich.console import Console
from rich.errors import MarkupError
from rich.logging import RichHandler
from rich.markup import escape
from rich.text import Text

from registrar.utils.config import get_config_value

DEFAULT_COLORS = {
    "store": "cyan",
    "catalog": "blue",
    "engine": "magenta",
    "operations": "green",
    "orchestrator": "bold magenta",
    "assembly": "yellow",
    "config": "bright_blue",
    "cli": "white",
}

# An unreadable configuration file must not stop logging
_CONFIG_ERRORS = (OSError, ValueError, yaml.YAMLError)


def _setting(path: str, default):
    try:
        return get_config_value(path, default)
    except _CONFIG_ERRORS:
        return default


class ComponentLogger:
    """
    Logger wrapper that prefixes each message with its component and styles it.

    ``key_info`` is bold, ``debug`` is dim, and ``success``, ``warning``,
    ``error`` and ``timing`` carry fixed colors and a leading glyph.
    """

    def __init__(self, base_logger: logging.Logger, component_name: str, color: str = "white"):
        self.base_logger = base_logger
        self.component_name = component_name
        self.color = color

    @property
    def name(self) -> str:
        return self.base_logger.name

    def _format_message(self, message: str, style: str, emoji: str = "") -> str:
        prefix = f"{emoji}{self.component_name.title()}: "
        # Registry paths contain brackets
        body = escape(str(message))
        if style:
            return f"[{style}]{prefix}{body}[/{style}]"
        return f"{prefix}{body}"

    def key_info(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, f"bold {self.color}"))

    def info(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, self.color))

    def debug(self, message: str) -> None:
        self.base_logger.debug(self._format_message(message, f"dim {self.color}", "🔍 "))

    def warning(self, message: str) -> None:
        self.base_logger.warning(self._format_message(message, "bold yellow", "⚠️  "))

    def error(self, message: str, exc_info: bool = False) -> None:
        self.base_logger.error(self._format_message(message, "bold red", "❌ "), exc_info=exc_info)

    def success(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, "bold green", "✅ "))

    def timing(self, message: str) -> None:
        self.base_logger.info(self._format_message(message, "bold white", "🕒 "))


class PlainTextFormatter(logging.Formatter):
    """Formatter for trace files: strips the Rich markup used on the terminal."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        try:
            return Text.from_markup(text).plain
        except MarkupError:
            return text


def _setup_rich_logging(level: int = logging.INFO) -> None:
    """Install the Rich handler on the root logger unless one is already there."""
    root_logger = logging.getLogger()
    if any(isinstance(h, RichHandler) for h in root_logger.handlers):
        return

    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(
        RichHandler(
            console=Console(stderr=True, width=120),
            rich_tracebacks=_setting("logging.rich_tracebacks", True),
            tracebacks_show_locals=_setting("logging.show_traceback_locals", False),
            show_path=_setting("logging.show_full_paths", False),
            markup=True,
        )
    )


def set_log_level(level: int) -> None:
    """Set the terminal log level; trace files keep receiving debug records."""
    _setup_rich_logging(level)
    root_logger = logging.getLogger()
    has_trace_file = False
    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(level)
        elif isinstance(handler, logging.FileHandler):
            has_trace_file = True
    root_logger.setLevel(min(level, logging.DEBUG) if has_trace_file else level)


def default_trace_file() -> Path:
    """Return a fresh trace file path in the temporary directory."""
    fd, path = tempfile.mkstemp(prefix="registrar.trace.", suffix=".log")
    os.close(fd)
    return Path(path)


def attach_trace_file(path: str | Path | None = None) -> Path:
    """Mirror every log record (at DEBUG and above) into a plain-text file.

    Args:
        path: Trace file to append to; a new temporary file when None

    Returns:
        The path of the trace file
    """
    trace_path = Path(path) if path is not None else default_trace_file()
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if (
            isinstance(handler, logging.FileHandler)
            and Path(handler.baseFilename) == trace_path.resolve()
        ):
            return trace_path

    trace_path.parent.mkdir(parents=True, exist_ok=True)

    # The file sees debug records even when the terminal does not
    terminal_level = root_logger.level or logging.INFO
    for existing in root_logger.handlers:
        if isinstance(existing, RichHandler) and existing.level == logging.NOTSET:
            existing.setLevel(terminal_level)
    root_logger.setLevel(logging.DEBUG)

    handler = logging.FileHandler(trace_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(PlainTextFormatter("%(asctime)s %(levelname)-8s %(message)s"))
    root_logger.addHandler(handler)
    return trace_path


def detach_trace_files() -> None:
    """Remove and close every trace file handler from the root logger."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            root_logger.removeHandler(handler)
            handler.close()


def get_logger(
    component_name: str = None,
    level: int = logging.INFO,
    *,
    name: str = None,
    color: str = None,
) -> ComponentLogger:
    """
    Return the logger for a registrar component.

    Args:
        component_name: Component name; the logger is ``registrar.<component_name>``
        level: Root level, applied only when logging is first set up
        name: Use this logger name as is, skipping the color lookup
        color: Rich color overriding the configured one

    Examples:
        logger = get_logger("store")
        logger = get_logger(name="test_logger", color="blue")
    """
    _setup_rich_logging(level)

    if name is not None:
        return ComponentLogger(logging.getLogger(name), name, color or "white")
    if component_name is None:
        raise ValueError(
            "Component name is required. Usage: get_logger('component_name') or "
            "get_logger(name='custom_name', color='blue')"
        )

    if color is None:
        color = _setting(f"logging.colors.{component_name}", None)
        color = color or DEFAULT_COLORS.get(component_name, "white")
    return ComponentLogger(logging.getLogger(f"registrar.{component_name}"), component_name, color)
