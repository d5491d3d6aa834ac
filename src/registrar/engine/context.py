"""Shared context handed to every probe and operation of one matrix run."""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from registrar.store.store import ConfigurationStore, root_key_name

if TYPE_CHECKING:
    from registrar.config_models import InstallerConfig
    from registrar.operations.base import VsPackageInfo


@dataclass(frozen=True)
class OperationContext:
    """Everything an operation needs besides the target itself.

    :param store: Store the run operates on
    :param config: Finalized installer configuration
    :param install: True to register, False to unregister
    :param per_user: Operate on the current-user hive instead of the machine hive
    :param wow64: Use the 32-bit compatibility view of the machine hive
    :param throw_on_missing: Treat a missing key or value on removal as an error
    :param verbose: Log every write at info level instead of debug
    :param package: IDE package identity, only needed by the IDE surfaces
    """

    store: ConfigurationStore | None
    config: "InstallerConfig | None" = None
    install: bool = True
    per_user: bool = False
    wow64: bool = False
    throw_on_missing: bool = True
    verbose: bool = False
    package: "VsPackageInfo | None" = None

    @property
    def simulate(self) -> bool:
        return self.store.simulate if self.store is not None else True

    @property
    def root_name(self) -> str:
        """Software root below the hive, e.g. ``Software\\Wow6432Node``."""
        return root_key_name(self.per_user, self.wow64)

    def with_wow64(self, wow64: bool) -> "OperationContext":
        return self if wow64 == self.wow64 else replace(self, wow64=wow64)

    @classmethod
    def from_config(
        cls,
        store: ConfigurationStore,
        config: "InstallerConfig",
        package: "VsPackageInfo | None" = None,
    ) -> "OperationContext":
        return cls(
            store=store,
            config=config,
            install=config.install,
            per_user=config.per_user,
            wow64=config.wow64,
            throw_on_missing=config.throw_on_missing,
            verbose=config.verbose,
            package=package,
        )
