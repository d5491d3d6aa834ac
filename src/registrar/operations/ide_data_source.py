"""IDE data source registration: ``DataSources\\{data source id}``."""

from registrar.catalog.targets import IdeTarget
from registrar.engine.context import OperationContext
from registrar.engine.probes import Presence

from .base import PROJECT_NAME, RegistrationOperation, StoreWriter, format_id

DATA_SOURCE_NAME = f"{PROJECT_NAME} Database File"


class IdeDataSourceOperation(RegistrationOperation):
    name = "ide_data_source"
    description = "IDE data source"

    def install(
        self, target: IdeTarget, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        package = context.package
        provider_id = format_id(package.data_provider_id)

        with writer.open_key(self.root(context), presence.key_name) as ide_key:
            with writer.open_key(ide_key, "DataSources", writable=True) as sources:
                with writer.ensure_child(sources, format_id(package.data_source_id)) as key:
                    writer.ensure_values(
                        key, {None: DATA_SOURCE_NAME, "DefaultProvider": provider_id}
                    )
                    writer.ensure_child(key, f"SupportingProviders\\{provider_id}").close()

    def uninstall(
        self, target: IdeTarget, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        with writer.open_key(self.root(context), presence.key_name) as ide_key:
            sources = ide_key.open_child("DataSources", writable=True)
            if sources is None:
                return
            with sources:
                writer.remove_subtree(sources, format_id(context.package.data_source_id))
