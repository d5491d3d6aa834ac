"""Installer configuration model.

:class:`InstallerConfig` is the single, immutable record that drives a run.
It is assembled once by :func:`build_config` from three layers, lowest
priority first: built-in defaults, the ``installer`` section of the
configuration file, and command line options. :func:`finalize_config` then
applies the confirmation gate and the image runtime check, reads the core and
designer assembly names from their files, and returns the record the rest
of the run consumes. Nothing modifies it afterwards.

Examples:
    >>> config = build_config({"confirm": True, "simulate": True})
    >>> config = finalize_config(config)
    >>> config.has_flags(InstallFlags.ASSEMBLY_FOLDERS)
    True
"""

import os
from enum import IntFlag
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from registrar.base.errors import ConfigurationError, ImageFormatError
from registrar.catalog.targets import Version
from registrar.store.store import is_64bit_process
from registrar.utils.assembly_info import (
    AssemblyIdentity,
    image_assembly_identity,
    image_runtime_version,
)
from registrar.utils.config import get_config_builder
from registrar.utils.logger import get_logger

logger = get_logger("config")

CLR_V2_IMAGE_RUNTIME_VERSION = "v2.0.50727"
CLR_V4_IMAGE_RUNTIME_VERSION = "v4.0.30319"


class InstallFlags(IntFlag):
    """Registration surfaces selected for a run."""

    NONE = 0x0
    GLOBAL_ASSEMBLY_CACHE = 0x1
    ASSEMBLY_FOLDERS = 0x2
    DB_PROVIDER_FACTORY = 0x4
    VS_PACKAGE = 0x8
    VS_PACKAGE_GLOBAL_ASSEMBLY_CACHE = 0x10
    VS_DATA_SOURCE = 0x20
    VS_DATA_PROVIDER = 0x40
    VS_DEVENV_SETUP = 0x80

    FRAMEWORK = GLOBAL_ASSEMBLY_CACHE | ASSEMBLY_FOLDERS | DB_PROVIDER_FACTORY
    VS = (
        VS_PACKAGE
        | VS_PACKAGE_GLOBAL_ASSEMBLY_CACHE
        | VS_DATA_SOURCE
        | VS_DATA_PROVIDER
        | VS_DEVENV_SETUP
    )
    ALL = FRAMEWORK | VS
    ALL_EXCEPT_GLOBAL_ASSEMBLY_CACHE = ALL & ~(
        GLOBAL_ASSEMBLY_CACHE | VS_PACKAGE_GLOBAL_ASSEMBLY_CACHE
    )
    DEFAULT = ALL

    @classmethod
    def parse(cls, text: "str | int | InstallFlags") -> "InstallFlags":
        """Parse ``"All"``, ``"Framework, VsPackage"``, ``"vs_data_source"`` or ``"0x7"``."""
        if isinstance(text, int):
            return cls(text)
        result = cls.NONE
        for token in str(text).replace("|", ",").split(","):
            token = token.strip()
            if not token:
                continue
            try:
                result |= cls(int(token, 0))
                continue
            except ValueError:
                pass
            key = token.replace("_", "").replace("-", "").lower()
            for name, member in cls.__members__.items():
                if name.replace("_", "").lower() == key:
                    result |= member
                    break
            else:
                raise ValueError(f"unknown install flag: {token}")
        return result


class InstallerConfig(BaseModel):
    """Immutable configuration of one install or uninstall run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ---- mode ----
    install: bool = True
    simulate: bool = True
    confirm: bool = False
    per_user: bool = False
    wow64: bool = False
    throw_on_missing: bool = True
    install_flags: InstallFlags = InstallFlags.DEFAULT

    # ---- diagnostics ----
    verbose: bool = False
    debug: bool = False
    no_log: bool = False
    log_file: Path | None = None
    no_runtime_version: bool = False

    # ---- files ----
    directory: Path = Field(default_factory=Path.cwd)
    core_file_name: str = "System.Data.SQLite.dll"
    linq_file_name: str = "System.Data.SQLite.Linq.dll"
    ef6_file_name: str = "System.Data.SQLite.EF6.dll"
    designer_file_name: str = "SQLite.Designer.dll"
    system_directory: Path | None = None
    gac_tool: str = "gacutil"
    store_file: Path | None = None

    # ---- provider identity ----
    # Read from the assembly files; these replace the version or token read
    assembly_version: str | None = None
    public_key_token: str | None = None
    # Set by finalize_config
    core_assembly: AssemblyIdentity | None = None
    designer_assembly: AssemblyIdentity | None = None

    # ---- target selection ----
    registry_version: str | None = None
    config_version: str | None = None
    ide_version: str | None = None
    ide_version_suffix: str | None = None
    no_desktop: bool = False
    no_compact: bool = False
    no_netfx20: bool = False
    no_netfx35: bool = False
    no_netfx40: bool = False
    no_netfx45: bool = False
    no_netfx451: bool = False
    no_vs2005: bool = False
    no_vs2008: bool = False
    no_vs2010: bool = False
    no_vs2012: bool = False
    no_vs2013: bool = False

    @field_validator("install_flags", mode="before")
    @classmethod
    def _parse_install_flags(cls, value: Any) -> InstallFlags:
        return InstallFlags.parse(value)

    @field_validator("registry_version", "config_version", "ide_version")
    @classmethod
    def _check_version(cls, value: str | None) -> str | None:
        if value is not None:
            Version.parse(value)
        return value

    # ---- derived values ----

    def file_path(self, file_name: str) -> Path:
        return self.directory / file_name

    @property
    def core_path(self) -> Path:
        return self.file_path(self.core_file_name)

    @property
    def linq_path(self) -> Path:
        return self.file_path(self.linq_file_name)

    @property
    def ef6_path(self) -> Path:
        return self.file_path(self.ef6_file_name)

    @property
    def designer_path(self) -> Path:
        return self.file_path(self.designer_file_name)

    def has_flags(self, flags: InstallFlags, all: bool = True) -> bool:
        if all:
            return (self.install_flags & flags) == flags
        return (self.install_flags & flags) != InstallFlags.NONE

    def is_linq_supported(self) -> bool:
        return not (self.no_netfx35 and self.no_netfx40 and self.no_netfx45 and self.no_netfx451)

    def is_ef6_supported(self) -> bool:
        if self.no_netfx40 and self.no_netfx45 and self.no_netfx451:
            return False
        return self.ef6_path.is_file()

    def assembly_identity(self, path: Path) -> AssemblyIdentity:
        """Identity read from the assembly at ``path``, with the configured overrides.

        Raises:
            ImageFormatError: If the file is not a managed assembly
        """
        return image_assembly_identity(path).with_overrides(
            self.assembly_version, self.public_key_token
        )

    def core_identity(self) -> AssemblyIdentity:
        if self.core_assembly is not None:
            return self.core_assembly
        return self.assembly_identity(self.core_path)

    def designer_identity(self) -> AssemblyIdentity:
        if self.designer_assembly is not None:
            return self.designer_assembly
        return self.assembly_identity(self.designer_path)

    def system_directory_path(self, wow64: bool) -> Path:
        """Directory holding mscoree.dll; the 32-bit view when wow64 is set."""
        if self.system_directory is not None:
            return self.system_directory
        windows = Path(os.environ.get("SystemRoot", r"C:\Windows"))
        if wow64 and is_64bit_process():
            return windows / "SysWOW64"
        return windows / "System32"


def build_config(
    overrides: dict[str, Any] | None = None, config_path: str | Path | None = None
) -> InstallerConfig:
    """Assemble an :class:`InstallerConfig` from the file and explicit overrides.

    Args:
        overrides: Option values; entries whose value is None are ignored so
            that unset command line options fall through to the file
        config_path: Explicit configuration file; see
            :func:`registrar.utils.config.get_config_builder`

    Raises:
        ConfigurationError: If the file cannot be loaded or a value is invalid
    """
    try:
        settings = get_config_builder(config_path).installer_settings()
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(str(e)) from e

    settings.update({key: value for key, value in (overrides or {}).items() if value is not None})
    try:
        return InstallerConfig(**settings)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e


def check_runtime_version(config: InstallerConfig) -> InstallerConfig:
    """Restrict the targets to those the core assembly's runtime can serve.

    Returns a new record with the incompatible runtime and IDE versions
    suppressed, or the same record when the check is disabled.

    Raises:
        ConfigurationError: If the image runtime version is missing or unsupported
    """
    try:
        version = image_runtime_version(config.core_path)
    except ImageFormatError as e:
        raise ConfigurationError(f"Failed to check image runtime version: {e}") from e

    if config.no_runtime_version:
        logger.info(
            f"Assembly is compiled for the .NET Framework {version}; however, installation "
            "restrictions based on this fact have been disabled via the command line."
        )
        return config

    if not version:
        raise ConfigurationError("invalid core file image runtime version")

    if version == CLR_V2_IMAGE_RUNTIME_VERSION:
        update = dict.fromkeys(
            ("no_netfx40", "no_netfx45", "no_netfx451", "no_vs2010", "no_vs2012", "no_vs2013"),
            True,
        )
        disabled = CLR_V4_IMAGE_RUNTIME_VERSION
    elif version == CLR_V4_IMAGE_RUNTIME_VERSION:
        update = dict.fromkeys(("no_netfx20", "no_netfx35", "no_vs2005", "no_vs2008"), True)
        disabled = CLR_V2_IMAGE_RUNTIME_VERSION
    else:
        raise ConfigurationError(
            f"unsupported core file image runtime version {version}, must be "
            f"{CLR_V2_IMAGE_RUNTIME_VERSION} or {CLR_V4_IMAGE_RUNTIME_VERSION}"
        )

    logger.info(
        f"Assembly is compiled for the .NET Framework {version}, "
        f"support for the .NET Framework {disabled} is now disabled."
    )
    return config.model_copy(update=update)


def resolve_assembly_identities(config: InstallerConfig) -> InstallerConfig:
    """Read the core and designer assembly names before anything is changed.

    Raises:
        ConfigurationError: If either file is not a managed assembly
    """
    try:
        core = config.assembly_identity(config.core_path)
        designer = config.assembly_identity(config.designer_path)
    except ImageFormatError as e:
        raise ConfigurationError(f"Failed to read assembly name: {e}") from e

    logger.debug(f"Core assembly is {core}.")
    logger.debug(f"Designer assembly is {designer}.")
    return config.model_copy(update={"core_assembly": core, "designer_assembly": designer})


def finalize_config(config: InstallerConfig, require_confirm: bool = True) -> InstallerConfig:
    """Apply the confirmation gate and the runtime check, then read the assembly names.

    Raises:
        ConfigurationError: If the run is not confirmed, or the core or designer
            file is not a managed assembly
    """
    if config.simulate:
        logger.key_info(
            'No actual changes will be made to this system because "simulate" mode is enabled.'
        )

    if require_confirm and not config.confirm:
        raise ConfigurationError('Cannot continue, the "confirm" option is not enabled.')

    return resolve_assembly_identities(check_runtime_version(config))
