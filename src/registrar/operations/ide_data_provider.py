"""IDE data provider registration: ``DataProviders\\{data provider id}``.

The provider key ties the designer's factory service and data source to the
invariant name, and lists the designer objects the provider supports. The
``Assembly`` value is only written when the designer is published to the
shared assembly cache, since the IDE would otherwise fail to load it by name.
"""

from registrar.catalog.targets import IdeTarget
from registrar.engine.context import OperationContext
from registrar.engine.probes import Presence

from .base import DESCRIPTION, INVARIANT_NAME, RegistrationOperation, StoreWriter, format_id

SUPPORTED_OBJECTS = (
    "DataConnectionUIControl",
    "DataConnectionProperties",
    "DataConnectionSupport",
    "DataObjectSupport",
    "DataViewSupport",
)


class IdeDataProviderOperation(RegistrationOperation):
    name = "ide_data_provider"
    description = "IDE data provider"

    def provider_values(self, context: OperationContext) -> dict:
        package = context.package
        values = {None: DESCRIPTION}
        if package.global_assembly_cache:
            values["Assembly"] = str(package.assembly)
        values.update(
            {
                "AssociatedSource": format_id(package.data_source_id),
                "InvariantName": INVARIANT_NAME,
                "Technology": format_id(package.ado_net_technology_id),
                "CodeBase": str(context.config.designer_path),
                "FactoryService": format_id(package.service_id),
            }
        )
        return values

    def install(
        self, target: IdeTarget, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        with writer.open_key(self.root(context), presence.key_name) as ide_key:
            with writer.open_key(ide_key, "DataProviders", writable=True) as providers:
                provider_id = format_id(context.package.data_provider_id)
                with writer.ensure_child(providers, provider_id) as key:
                    writer.ensure_values(key, self.provider_values(context))
                    for name in SUPPORTED_OBJECTS:
                        writer.ensure_child(key, f"SupportedObjects\\{name}").close()

    def uninstall(
        self, target: IdeTarget, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        with writer.open_key(self.root(context), presence.key_name) as ide_key:
            providers = ide_key.open_child("DataProviders", writable=True)
            if providers is None:
                return
            with providers:
                writer.remove_subtree(providers, format_id(context.package.data_provider_id))
