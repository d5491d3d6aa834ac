"""Shared assembly cache publishing.

Unlike the other surfaces this is not run per target: the assemblies are
published once per machine with the ``gacutil`` tool. Install order is core,
LINQ, EF6, designer; removal runs in reverse so that nothing is removed
before the assemblies that depend on it.
"""

import subprocess
from collections.abc import Callable
from pathlib import Path

from registrar.base.errors import ImageFormatError
from registrar.base.results import OperationResult
from registrar.config_models import InstallerConfig, InstallFlags
from registrar.utils.assembly_info import AssemblyIdentity

from .base import logger

Runner = Callable[..., subprocess.CompletedProcess]


class SharedCachePublisher:
    """Publishes the provider assemblies to, or removes them from, the shared cache.

    :param config: Finalized installer configuration
    :param runner: Process launcher; ``subprocess.run`` unless overridden in tests
    """

    def __init__(self, config: InstallerConfig, runner: Runner | None = None):
        self.config = config
        self.runner = runner or subprocess.run

    def assemblies(self) -> list[Path]:
        """Assemblies to publish, in install order."""
        config = self.config
        paths = [config.core_path]
        if config.is_linq_supported():
            paths.append(config.linq_path)
        if config.is_ef6_supported():
            paths.append(config.ef6_path)
        if config.has_flags(InstallFlags.VS_PACKAGE_GLOBAL_ASSEMBLY_CACHE):
            paths.append(config.designer_path)
        return paths

    def run(self) -> OperationResult:
        if self.config.install:
            paths = self.assemblies()
        else:
            paths = list(reversed(self.assemblies()))

        for path in paths:
            error = self.install(path) if self.config.install else self.remove(path)
            if error is not None:
                return OperationResult.failed(error)
        return OperationResult.ok(side_effect=bool(paths))

    def install(self, path: Path) -> str | None:
        logger.info(f"GacInstall: assemblyPath = {path}")
        return self._invoke(["/i", str(path)], path)

    def remove(self, path: Path) -> str | None:
        logger.info(f"GacRemove: assemblyPath = {path}")
        try:
            identity = self.identity(path)
        except ImageFormatError as e:
            return f"could not read assembly name of {path}: {e}"
        return self._invoke(["/u", str(identity)], path)

    def identity(self, path: Path) -> AssemblyIdentity:
        """Display name gacutil removes ``path`` by; core and designer names are read once."""
        if path == self.config.core_path:
            return self.config.core_identity()
        if path == self.config.designer_path:
            return self.config.designer_identity()
        return self.config.assembly_identity(path)

    def _invoke(self, arguments: list[str], path: Path) -> str | None:
        cmd = [self.config.gac_tool, "/nologo", *arguments]
        if self.config.simulate:
            logger.debug(f"Would run: {' '.join(cmd)} (simulated)")
            return None

        try:
            result = self.runner(cmd, capture_output=True, text=True)
        except OSError as e:
            return f"could not start {self.config.gac_tool}: {e}"

        if result.returncode != 0:
            output = (result.stdout or result.stderr or "").strip()
            return (
                f"{self.config.gac_tool} failed for {path} "
                f"with exit code {result.returncode}: {output}"
            )
        return None
