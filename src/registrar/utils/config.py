"""
Configuration File

Finds and reads the optional registrar configuration file:
- Discovery: explicit path, then ``$REGISTRAR_CONFIG``, then ``registrar.yml``
  in the working directory
- ``.env`` in the working directory is loaded before anything is expanded
- ``${NAME}``, ``${NAME:-fallback}`` and ``$NAME`` placeholders in string values
- Dot-path lookups such as ``logging.colors.engine``

Every installer option has a built-in default, so running without a file is
normal. When a file exists, its ``installer`` section supplies option
defaults, ``logging`` tunes terminal output and ``cli`` picks the theme.

Example registrar.yml::

    installer:
      simulate: false
      confirm: true
      directory: ${REGISTRAR_BIN:-C:\\Program Files\\System.Data.SQLite\\bin}
      no_compact: true
    logging:
      colors:
        engine: magenta
"""

import copy
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Plain logging: logger.py reads its colors through this module
logger = logging.getLogger("CONFIG")

CONFIG_ENV_VAR = "REGISTRAR_CONFIG"
DEFAULT_CONFIG_NAME = "registrar.yml"

_PLACEHOLDER = re.compile(
    r"\$\{(?P<braced>[^}:]+)(?::-(?P<fallback>.*?))?\}|\$(?P<bare>[A-Za-z_]\w*)"
)


def load_dotenv_file(directory: Path | None = None) -> Path | None:
    """Load ``.env`` from ``directory`` (the working directory by default).

    Variables already present in the environment win.
    """
    dotenv_path = (directory or Path.cwd()) / ".env"
    if not dotenv_path.is_file():
        return None
    load_dotenv(dotenv_path, override=False)
    logger.debug(f"Loaded .env file from {dotenv_path}")
    return dotenv_path


def discover_config_file() -> Path | None:
    """Return the configuration file to use when none was given explicitly."""
    from_env = os.environ.get(CONFIG_ENV_VAR)
    if from_env:
        return Path(from_env)
    candidate = Path.cwd() / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_file() else None


def expand_placeholders(data: Any) -> Any:
    """Substitute environment variables into every string of ``data``.

    Unknown variables without a fallback are left as written.
    """
    if isinstance(data, dict):
        return {key: expand_placeholders(value) for key, value in data.items()}
    if isinstance(data, list):
        return [expand_placeholders(item) for item in data]
    if not isinstance(data, str):
        return data

    def substitute(match: re.Match) -> str:
        name = match.group("braced") or match.group("bare")
        value = os.environ.get(name)
        if value is not None:
            return value
        if match.group("fallback") is not None:
            return match.group("fallback")
        logger.info(f"Environment variable '{name}' not found, keeping original value")
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, data)


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Read a YAML document that must be a mapping; an empty file is ``{}``.

    Raises:
        yaml.YAMLError: If the file is not valid YAML
        ValueError: If the top level is not a mapping
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML configuration {path}: {e}")
        raise yaml.YAMLError(f"Error parsing YAML configuration: {e}") from e

    if data is None:
        logger.warning(f"Configuration file is empty: {path}")
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a dictionary/mapping: {path}")
    return data


class ConfigBuilder:
    """
    The parsed configuration file, with placeholders expanded.

    Attributes:
        config_path: File the settings came from, None when running on defaults
        raw_config: Settings with environment placeholders expanded
    """

    def __init__(self, config_path: str | Path | None = None):
        """
        Args:
            config_path: Configuration file; discovered when None, and an
                empty configuration when nothing is found

        Raises:
            FileNotFoundError: If the given (or ``$REGISTRAR_CONFIG``) file is missing
        """
        load_dotenv_file()

        path = Path(config_path) if config_path is not None else discover_config_file()
        self.config_path: Path | None = path
        if path is None:
            logger.debug("No configuration file found, using built-in defaults")
            self._unexpanded: dict[str, Any] = {}
            self.raw_config: dict[str, Any] = {}
            return

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        self._unexpanded = read_yaml_mapping(path)
        self.raw_config = expand_placeholders(copy.deepcopy(self._unexpanded))
        logger.info(f"Loaded configuration from {path}")

    def get(self, path: str, default: Any = None) -> Any:
        """Return the value at a dot-separated ``path``, or ``default``."""
        node: Any = self.raw_config
        for key in path.split("."):
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def get_unexpanded_config(self) -> dict[str, Any]:
        """The settings as written, placeholders included."""
        return copy.deepcopy(self._unexpanded)

    def installer_settings(self) -> dict[str, Any]:
        """Return a copy of the ``installer`` section."""
        settings = self.get("installer") or {}
        if not isinstance(settings, dict):
            raise ValueError(
                f"'installer' section must be a mapping in {self.config_path}, "
                f"got {type(settings).__name__}"
            )
        return dict(settings)


# =============================================================================
# SHARED INSTANCES
# =============================================================================

# Keyed by resolved file path; None holds the discovered configuration
_builders: dict[str | None, ConfigBuilder] = {}


def get_config_builder(config_path: str | Path | None = None) -> ConfigBuilder:
    """Return the cached builder for ``config_path`` (the discovered file when None).

    Examples:
        >>> simulate = get_config_builder().get("installer.simulate", True)
        >>> builder = get_config_builder("/path/to/registrar.yml")
    """
    key = str(Path(config_path).resolve()) if config_path is not None else None
    builder = _builders.get(key)
    if builder is None:
        builder = ConfigBuilder(config_path)
        _builders[key] = builder
    return builder


def get_config_value(path: str, default: Any = None, config_path: str | Path | None = None) -> Any:
    """Look up one dot-separated setting.

    Raises:
        ValueError: If path is empty
    """
    if not path:
        raise ValueError("Configuration path cannot be empty or None")
    return get_config_builder(config_path).get(path, default)


def reset_config() -> None:
    """Forget every cached builder so the next lookup reads the files again."""
    _builders.clear()
