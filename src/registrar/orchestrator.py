"""Top-level sequencing of one install or uninstall run.

The orchestrator turns a finalized :class:`InstallerConfig` into work:

1. Open the store and build the target catalog once
2. Publish to (or remove from) the shared assembly cache
3. Run each selected registration surface through the matrix engine, in a
   fixed order, stopping at the first failure
4. Log the store and file counters and the overall outcome

Runtime surfaces use the configured 32-bit view; IDE surfaces always use it,
since the IDE is a 32-bit application.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from registrar.base.results import FileCounters, MatrixResult, StoreCounters
from registrar.catalog.catalog import TargetCatalog, build_catalog
from registrar.config_models import InstallerConfig, InstallFlags
from registrar.engine.context import OperationContext
from registrar.engine.matrix import MatrixEngine
from registrar.engine.probes import (
    IdeProbe,
    MachineConfigProbe,
    PresenceProbe,
    RuntimeRegistryProbe,
)
from registrar.operations import (
    AssemblyFoldersOperation,
    IdeDataProviderOperation,
    IdeDataSourceOperation,
    IdePackageOperation,
    IdeSetupOperation,
    ProviderFactoryOperation,
    RegistrationOperation,
    SharedCachePublisher,
    VsPackageInfo,
)
from registrar.store.backends import StoreBackend, YamlFileBackend, default_backend
from registrar.store.store import ConfigurationStore
from registrar.utils.logger import get_logger

logger = get_logger("orchestrator")


@dataclass(frozen=True)
class Surface:
    """One registration surface and how to run it across the catalog.

    :param flag: Install flag selecting the surface
    :param operation: Callback run per installed target
    :param probe: Presence probe selecting the targets
    :param wow64: Force the 32-bit view (None keeps the configured one)
    :param version_option: Configuration field holding a single-version override
    """

    flag: InstallFlags
    operation: RegistrationOperation
    probe: PresenceProbe
    wow64: bool | None = None
    version_option: str | None = None


SURFACES = (
    Surface(
        InstallFlags.ASSEMBLY_FOLDERS,
        AssemblyFoldersOperation(),
        RuntimeRegistryProbe(),
        version_option="registry_version",
    ),
    Surface(
        InstallFlags.DB_PROVIDER_FACTORY,
        ProviderFactoryOperation(),
        MachineConfigProbe(),
        version_option="config_version",
    ),
    Surface(InstallFlags.VS_PACKAGE, IdePackageOperation(), IdeProbe(), wow64=True),
    Surface(InstallFlags.VS_DATA_SOURCE, IdeDataSourceOperation(), IdeProbe(), wow64=True),
    Surface(InstallFlags.VS_DATA_PROVIDER, IdeDataProviderOperation(), IdeProbe(), wow64=True),
    Surface(InstallFlags.VS_DEVENV_SETUP, IdeSetupOperation(), IdeProbe(), wow64=True),
)


@dataclass
class RunSummary:
    """Outcome of a whole run."""

    success: bool = True
    error: str | None = None
    changed: bool = False
    counters: StoreCounters = field(default_factory=StoreCounters)
    files: FileCounters = field(default_factory=FileCounters)
    surfaces: dict[str, MatrixResult] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def absorb(self, name: str, result: MatrixResult) -> None:
        self.surfaces[name] = result
        self.counters.merge(result.counters)
        self.files.merge(result.files)
        self.changed = self.changed or result.changed
        if not result.success:
            self.success = False
            self.error = result.error


class Orchestrator:
    """Runs every selected registration surface against one store.

    :param config: Finalized installer configuration
    :param store: Open store; the caller owns and closes it
    :param engine: Matrix engine (a fresh one by default)
    :param runner: Process launcher handed to the shared cache publisher
    """

    def __init__(
        self,
        config: InstallerConfig,
        store: ConfigurationStore,
        engine: MatrixEngine | None = None,
        runner: Callable | None = None,
        surfaces: tuple[Surface, ...] = SURFACES,
    ):
        self.config = config
        self.store = store
        self.engine = engine or MatrixEngine()
        self.runner = runner
        self.surfaces = surfaces

    def build_catalog(self) -> TargetCatalog:
        return build_catalog(self.config, self.store.scope_root(self.config.per_user))

    def run(self) -> RunSummary:
        config = self.config
        summary = RunSummary()
        action = "Installing" if config.install else "Uninstalling"
        logger.key_info(f"{action} the {config.core_identity().name} provider")
        logger.debug(f"System directory is {config.system_directory_path(config.wow64)}.")

        catalog = self.build_catalog()
        context = OperationContext.from_config(
            self.store, config, VsPackageInfo.from_config(config)
        )

        if config.has_flags(InstallFlags.GLOBAL_ASSEMBLY_CACHE):
            result = SharedCachePublisher(config, self.runner).run()
            shared = MatrixResult(success=result.success, error=result.error)
            shared.absorb(result)
            summary.absorb("shared_cache", shared)
            if not summary.success:
                return self._finish(summary)

        for surface in self.surfaces:
            if not config.has_flags(surface.flag):
                continue
            name = surface.operation.name
            logger.info(f"{surface.operation.description}...")
            surface_context = (
                context if surface.wow64 is None else context.with_wow64(surface.wow64)
            )
            version = getattr(config, surface.version_option) if surface.version_option else None

            started = time.perf_counter()
            result = self.engine.run(
                catalog, surface.probe, surface.operation, surface_context, version
            )
            if config.verbose:
                logger.timing(f"{name} finished in {time.perf_counter() - started:.2f}s")
            logger.debug(f"{name}: targets = {result.invoked}, changed = {result.changed}")
            summary.absorb(name, result)
            if not summary.success:
                break

        return self._finish(summary)

    @staticmethod
    def _finish(summary: RunSummary) -> RunSummary:
        logger.info(summary.counters.summary())
        logger.info(summary.files.summary())
        if summary.success:
            logger.success("Success.")
        else:
            logger.error(summary.error)
            logger.error("Failure.")
        return summary


def open_store(config: InstallerConfig, backend: StoreBackend | None = None) -> ConfigurationStore:
    """Open the store a run operates on: the YAML store file if configured, else the registry."""
    if backend is None:
        backend = YamlFileBackend(config.store_file) if config.store_file else default_backend()
    return ConfigurationStore(backend, simulate=config.simulate)


def run_installer(
    config: InstallerConfig,
    backend: StoreBackend | None = None,
    runner: Callable | None = None,
) -> RunSummary:
    """Run a finalized configuration end to end and close the store afterwards."""
    with open_store(config, backend) as store:
        return Orchestrator(config, store, runner=runner).run()
