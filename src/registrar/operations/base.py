"""Registration operation base class and shared store helpers.

Every registration surface is a :class:`RegistrationOperation` subclass with
an ``install`` and an ``uninstall`` method. Instances are callables with the
signature the matrix engine expects, ``operation(target, presence, context)``,
and pick the method from ``context.install``.

Operations are written declaratively through a :class:`StoreWriter`:

- ``ensure_child`` / ``ensure_value`` make a key or value exist with the given
  content, touching the store only where it differs
- ``remove_subtree`` / ``remove_child`` / ``remove_value`` make something
  disappear and are no-ops when it is already gone

The writer keeps the operation's counters and records whether anything
(would have) changed, which becomes the result's ``side_effect`` flag.
"""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from registrar.base.results import FileCounters, OperationResult, StoreCounters
from registrar.config_models import InstallerConfig, InstallFlags
from registrar.engine.context import OperationContext
from registrar.engine.probes import Presence
from registrar.store.handle import StoreHandle
from registrar.utils.assembly_info import AssemblyIdentity
from registrar.utils.logger import get_logger

logger = get_logger("operations")

# Provider identity
PROJECT_NAME = "System.Data.SQLite"
LEGACY_PROJECT_NAME = "SQLite"
PROVIDER_NAME = "SQLite Data Provider"
INVARIANT_NAME = "System.Data.SQLite"
DESCRIPTION = ".NET Framework Data Provider for SQLite"
FACTORY_TYPE_NAME = "System.Data.SQLite.SQLiteFactory"
EF6_ASSEMBLY_NAME = (
    "EntityFramework, Version=6.0.0.0, Culture=neutral, PublicKeyToken=b77a5c561934e089"
)


def format_id(value: UUID) -> str:
    """Registry form of an identifier, e.g. ``{dcbe6c8d-0e57-4099-a183-98ff74c64d9c}``."""
    return "{" + str(value) + "}"


@dataclass(frozen=True)
class VsPackageInfo:
    """Identity of the IDE designer package and the identifiers it registers.

    :param assembly: Identity of the designer assembly
    :param global_assembly_cache: The designer is published to the shared
        assembly cache, so the IDE may load it by name
    """

    assembly: AssemblyIdentity
    global_assembly_cache: bool = False
    ado_net_technology_id: UUID = UUID("77AB9A9D-78B9-4BA7-91AC-873F5338F1D2")
    package_id: UUID = UUID("DCBE6C8D-0E57-4099-A183-98FF74C64D9C")
    service_id: UUID = UUID("DCBE6C8D-0E57-4099-A183-98FF74C64D9D")
    data_source_id: UUID = UUID("0EBAAB6E-CA80-4B4A-8DDF-CBE6BF058C71")
    data_provider_id: UUID = UUID("0EBAAB6E-CA80-4B4A-8DDF-CBE6BF058C70")

    @classmethod
    def from_config(cls, config: InstallerConfig) -> "VsPackageInfo":
        return cls(
            assembly=config.designer_identity(),
            global_assembly_cache=config.has_flags(
                InstallFlags.GLOBAL_ASSEMBLY_CACHE | InstallFlags.VS_PACKAGE_GLOBAL_ASSEMBLY_CACHE
            ),
        )


class OperationAborted(Exception):
    """Raised inside an operation to end it with a failed result."""

    pass


@dataclass
class StoreWriter:
    """Declarative store edits on behalf of one operation invocation."""

    context: OperationContext
    counters: StoreCounters = field(default_factory=StoreCounters)
    files: FileCounters = field(default_factory=FileCounters)
    side_effect: bool = False

    # ---- opening ----

    def open_key(self, parent: StoreHandle, path: str, writable: bool = False) -> StoreHandle:
        """Open an existing key or abort with ``could not open registry key``."""
        handle = parent.open_child(path, writable)
        if handle is None:
            raise OperationAborted(f"could not open registry key: {parent.name}\\{path}")
        return handle

    def ensure_child(self, parent: StoreHandle, path: str) -> StoreHandle:
        """Return a writable handle for ``parent\\path``, creating the key when missing."""
        existing = parent.open_child(path, writable=True)
        if existing is not None:
            return existing
        handle = parent.create_child(path, self.counters)
        self.side_effect = True
        self._trace(f"created key {handle.name}")
        return handle

    # ---- writing ----

    def ensure_value(self, handle: StoreHandle, name: str | None, value: Any) -> None:
        """Set ``name`` to ``value`` unless it already holds exactly that value.

        ``None`` (or an empty string) names the key's default value.
        """
        name = name or ""
        current = handle.get_value(name)
        if current is not None and type(current) is type(value) and current == value:
            return
        handle.set_value(name, value, self.counters)
        self.side_effect = True
        self._trace(f"set {handle.name}, {name or '(default)'} = {value!r}")

    def ensure_values(self, handle: StoreHandle, values: dict[str | None, Any]) -> None:
        for name, value in values.items():
            self.ensure_value(handle, name, value)

    # ---- removing ----

    def remove_value(self, handle: StoreHandle, name: str) -> None:
        if handle.get_value(name) is None:
            return
        handle.delete_value(name, self.counters, self.context.throw_on_missing)
        self.side_effect = True
        self._trace(f"deleted value {handle.name}, {name}")

    def remove_child(
        self, parent: StoreHandle, path: str, throw_on_missing: bool | None = None
    ) -> None:
        """Delete the empty key ``parent\\path`` if it exists."""
        if not self._exists(parent, path):
            return
        if throw_on_missing is None:
            throw_on_missing = self.context.throw_on_missing
        parent.delete_child(path, self.counters, throw_on_missing)
        self.side_effect = True
        self._trace(f"deleted key {parent.name}\\{path}")

    def remove_subtree(self, parent: StoreHandle, path: str) -> None:
        """Delete ``parent\\path`` and everything below it if it exists."""
        if not self._exists(parent, path):
            return
        parent.delete_subtree(path, self.counters, self.context.throw_on_missing)
        self.side_effect = True
        self._trace(f"deleted key tree {parent.name}\\{path}")

    # ---- results ----

    def result(self) -> OperationResult:
        return OperationResult.ok(self.side_effect, self.counters, self.files)

    def failed(self, error: str) -> OperationResult:
        return OperationResult(
            success=False, error=error, counters=self.counters, files=self.files
        )

    @staticmethod
    def _exists(parent: StoreHandle, path: str) -> bool:
        handle = parent.open_child(path)
        if handle is None:
            return False
        handle.close()
        return True

    def _trace(self, message: str) -> None:
        if self.context.simulate:
            message = f"{message} (simulated)"
        if self.context.verbose:
            logger.info(message)
        else:
            logger.debug(message)


class RegistrationOperation:
    """Base class for one registration surface.

    Subclasses set ``name`` and implement :meth:`install` and
    :meth:`uninstall`. Both receive a fresh :class:`StoreWriter` and may
    raise :class:`OperationAborted` to fail the current target; the message
    is returned to the matrix engine unchanged.
    """

    name: str = ""
    description: str = ""

    def __call__(self, target, presence: Presence, context: OperationContext) -> OperationResult:
        writer = StoreWriter(context)
        try:
            if context.install:
                self.install(target, presence, context, writer)
            else:
                self.uninstall(target, presence, context, writer)
        except OperationAborted as e:
            logger.debug(f"{self.name}: {target}: {e}")
            return writer.failed(str(e))
        return writer.result()

    def install(self, target, presence: Presence, context: OperationContext, writer: StoreWriter):
        raise NotImplementedError(f"{type(self).__name__} must implement install()")

    def uninstall(
        self, target, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        raise NotImplementedError(f"{type(self).__name__} must implement uninstall()")

    @staticmethod
    def root(context: OperationContext) -> StoreHandle:
        return context.store.scope_root(context.per_user)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
