"""Presence probes: decide whether a target is installed on this machine.

A probe is called with a target, the hive handle of the catalog and the
shared context. It returns a :class:`Presence` describing where the target
lives, or None when it is not installed. Probes only ever open keys
read-only, so they behave the same in simulated and real runs.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from registrar.catalog.targets import DESKTOP_FAMILY, IdeTarget, RuntimeTarget, TargetKind
from registrar.store.handle import StoreHandle
from registrar.utils.logger import get_logger

from .context import OperationContext

logger = get_logger("engine")

MACHINE_CONFIG_DIRECTORY = "Config"
MACHINE_CONFIG_FILE = "machine.config"


@dataclass(frozen=True)
class Presence:
    """Where an installed target was found.

    :param key_name: Store key of the target, relative to the hive
    :param directory: Install directory, when the probe resolves one
    :param file: Configuration file, for the machine configuration probe
    """

    key_name: str
    directory: Path | None = None
    file: Path | None = None


class PresenceProbe(ABC):
    """Base class for presence probes."""

    kind: TargetKind = TargetKind.RUNTIME
    desktop_only: bool = False

    @abstractmethod
    def __call__(
        self, target, root: StoreHandle, context: OperationContext
    ) -> Presence | None:
        pass

    @abstractmethod
    def missing_message(self, target) -> str:
        pass

    @staticmethod
    def _open(root: StoreHandle, key_name: str) -> StoreHandle | None:
        return root.open_child(key_name, writable=False)


def framework_root_key_name(root_name: str) -> str:
    return f"{root_name}\\Microsoft\\{DESKTOP_FAMILY}"


def framework_directory(root: StoreHandle, target: RuntimeTarget, root_name: str) -> Path | None:
    """``InstallRoot\\v<version>`` of a desktop runtime, or None when unknown."""
    key = root.open_child(framework_root_key_name(root_name), writable=False)
    if key is None:
        return None
    with key:
        value = key.get_value("InstallRoot")
    if not isinstance(value, str) or not value:
        return None
    return Path(value) / target.version.key


class RuntimeRegistryProbe(PresenceProbe):
    """The runtime's key exists in the store."""

    def __call__(
        self, target: RuntimeTarget, root: StoreHandle, context: OperationContext
    ) -> Presence | None:
        key_name = target.key_name(context.root_name)
        key = self._open(root, key_name)
        if key is None:
            return None
        key.close()
        if target.is_desktop:
            logger.debug(f".NET Framework {target.version} found via registry {key_name}.")
        return Presence(key_name)

    def missing_message(self, target: RuntimeTarget) -> str:
        return f".NET Framework {target.version} registry not found, skipping..."


class RuntimeDirectoryProbe(PresenceProbe):
    """The runtime's key exists and, for desktop runtimes, so does its install directory."""

    def __call__(
        self, target: RuntimeTarget, root: StoreHandle, context: OperationContext
    ) -> Presence | None:
        key_name = target.key_name(context.root_name)
        key = self._open(root, key_name)
        if key is None:
            return None
        key.close()
        if not target.is_desktop:
            return Presence(key_name)

        directory = framework_directory(root, target, context.root_name)
        if directory is None or not directory.is_dir():
            return None
        logger.debug(f".NET Framework {target.version} found via directory {directory}.")
        return Presence(key_name, directory=directory)

    def missing_message(self, target: RuntimeTarget) -> str:
        return f".NET Framework {target.version} directory not found, skipping..."


class MachineConfigProbe(RuntimeDirectoryProbe):
    """A desktop runtime with an existing ``Config\\machine.config`` file."""

    desktop_only = True

    def __call__(
        self, target: RuntimeTarget, root: StoreHandle, context: OperationContext
    ) -> Presence | None:
        presence = super().__call__(target, root, context)
        if presence is None or presence.directory is None:
            return None

        config_directory = presence.directory / MACHINE_CONFIG_DIRECTORY
        if not config_directory.is_dir():
            logger.debug(
                f".NET Framework {target.version} directory {config_directory} does not exist"
            )
            return None
        file_name = config_directory / MACHINE_CONFIG_FILE
        if not file_name.is_file():
            logger.debug(f".NET Framework {target.version} file {file_name} does not exist")
            return None
        return Presence(presence.key_name, directory=presence.directory, file=file_name)


class IdeProbe(PresenceProbe):
    """The IDE's key exists and its ``InstallDir`` value names an existing directory."""

    kind = TargetKind.IDE

    def __call__(
        self, target: IdeTarget, root: StoreHandle, context: OperationContext
    ) -> Presence | None:
        key_name = target.key_name(context.root_name)
        key = self._open(root, key_name)
        if key is None:
            return None
        with key:
            value = key.get_value("InstallDir")
        if not isinstance(value, str) or not value:
            return None
        directory = Path(value)
        if not directory.is_dir():
            return None
        logger.debug(f"Visual Studio {target.version} found in directory {directory}.")
        return Presence(key_name, directory=directory)

    def missing_message(self, target: IdeTarget) -> str:
        return f"Visual Studio {target.version} not found, skipping..."
