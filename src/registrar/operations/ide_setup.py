"""IDE setup refresh: run ``devenv.exe /setup`` so the IDE picks up new packages.

The IDE only supports setup mode for machine-wide installations, so per-user
runs log and skip. Simulated runs log the command without launching it.
Installing and uninstalling run the same command.
"""

import subprocess

from registrar.catalog.targets import IdeTarget
from registrar.engine.context import OperationContext
from registrar.engine.probes import Presence

from .base import OperationAborted, RegistrationOperation, StoreWriter, logger

DEVENV_EXECUTABLE = "devenv.exe"
SETUP_ARGUMENT = "/setup"


class IdeSetupOperation(RegistrationOperation):
    name = "ide_setup"
    description = "IDE setup"

    def install(
        self, target: IdeTarget, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        if context.per_user:
            logger.info(
                f"Visual Studio {target.version} 'setup' mode is per-machine only, skipping..."
            )
            return

        directory = presence.directory
        cmd = [str(directory / DEVENV_EXECUTABLE), SETUP_ARGUMENT]
        if context.simulate:
            logger.info(f"Would run: {' '.join(cmd)} (simulated)")
            return

        logger.info(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, cwd=directory, capture_output=True, text=True)
        except OSError as e:
            raise OperationAborted(f"could not start {cmd[0]}: {e}") from e

        for line in (result.stdout + result.stderr).splitlines():
            if line.strip():
                logger.debug(f"{DEVENV_EXECUTABLE}: {line}")
        if result.returncode != 0:
            logger.warning(f"{DEVENV_EXECUTABLE} exited with code {result.returncode}")

    uninstall = install
