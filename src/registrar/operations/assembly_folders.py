"""Assembly folders: make the provider's directory visible to design-time tools.

Each runtime key gets ``AssemblyFoldersEx\\System.Data.SQLite`` whose default
value is the directory holding the provider assemblies. Installing also
removes the key written by older releases under the legacy project name.
"""

from registrar.catalog.targets import RuntimeTarget
from registrar.engine.context import OperationContext
from registrar.engine.probes import Presence

from .base import LEGACY_PROJECT_NAME, PROJECT_NAME, RegistrationOperation, StoreWriter

ASSEMBLY_FOLDERS_KEY = "AssemblyFoldersEx"


class AssemblyFoldersOperation(RegistrationOperation):
    name = "assembly_folders"
    description = "Assembly folders"

    def install(
        self,
        target: RuntimeTarget,
        presence: Presence,
        context: OperationContext,
        writer: StoreWriter,
    ):
        root = self.root(context)
        with writer.ensure_child(root, f"{presence.key_name}\\{ASSEMBLY_FOLDERS_KEY}") as folders:
            writer.remove_child(folders, LEGACY_PROJECT_NAME, throw_on_missing=False)
            with writer.ensure_child(folders, PROJECT_NAME) as key:
                writer.ensure_value(key, None, str(context.config.directory))

    def uninstall(
        self,
        target: RuntimeTarget,
        presence: Presence,
        context: OperationContext,
        writer: StoreWriter,
    ):
        folders = self.root(context).open_child(
            f"{presence.key_name}\\{ASSEMBLY_FOLDERS_KEY}", writable=True
        )
        if folders is None:
            return
        with folders:
            writer.remove_child(folders, PROJECT_NAME)
