"""IDE designer package registration.

Registers the designer package with an IDE version:

- ``Packages\\{package id}`` describing the package class and its assembly
- ``Menus`` value ``{package id}`` so the IDE merges the package menus
- ``Services\\{service id}`` mapping the designer service to the package
"""

from registrar.catalog.targets import IdeTarget
from registrar.engine.context import OperationContext
from registrar.engine.probes import Presence

from .base import PROJECT_NAME, RegistrationOperation, StoreWriter, format_id

PACKAGE_CLASS = "SQLite.Designer.SQLitePackage"
PACKAGE_NAME = f"{PROJECT_NAME} Designer Package"
SERVICE_NAME = f"{PROJECT_NAME} Designer Service"
COMPANY_NAME = "http://system.data.sqlite.org/"
PACKAGE_LOAD_ID = 400
MENU_RESOURCE = ", 1000, 3"
TOOLBOX_DEFAULT_ITEMS = 3


class IdePackageOperation(RegistrationOperation):
    name = "ide_package"
    description = "IDE package"

    def install(
        self, target: IdeTarget, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        config = context.config
        package = context.package
        package_id = format_id(package.package_id)
        in_process_server = config.system_directory_path(context.wow64) / "mscoree.dll"

        with writer.open_key(self.root(context), presence.key_name) as ide_key:
            with writer.open_key(ide_key, "Packages", writable=True) as packages:
                with writer.ensure_child(packages, package_id) as key:
                    writer.ensure_values(
                        key,
                        {
                            None: PACKAGE_NAME,
                            "Class": PACKAGE_CLASS,
                            "CodeBase": str(config.designer_path),
                            "ID": PACKAGE_LOAD_ID,
                            "InprocServer32": str(in_process_server),
                            "CompanyName": COMPANY_NAME,
                            "MinEdition": "standard",
                            "ProductName": PACKAGE_NAME,
                            "ProductVersion": "1.0",
                        },
                    )
                    with writer.ensure_child(key, "Toolbox") as toolbox:
                        writer.ensure_value(toolbox, "Default Items", TOOLBOX_DEFAULT_ITEMS)

            with writer.open_key(ide_key, "Menus", writable=True) as menus:
                writer.ensure_value(menus, package_id, MENU_RESOURCE)

            with writer.open_key(ide_key, "Services", writable=True) as services:
                with writer.ensure_child(services, format_id(package.service_id)) as key:
                    writer.ensure_values(key, {None: package_id, "Name": SERVICE_NAME})

    def uninstall(
        self, target: IdeTarget, presence: Presence, context: OperationContext, writer: StoreWriter
    ):
        package = context.package
        with writer.open_key(self.root(context), presence.key_name) as ide_key:
            packages = ide_key.open_child("Packages", writable=True)
            if packages is not None:
                with packages:
                    writer.remove_subtree(packages, format_id(package.package_id))

            menus = ide_key.open_child("Menus", writable=True)
            if menus is not None:
                with menus:
                    writer.remove_value(menus, format_id(package.package_id))

            services = ide_key.open_child("Services", writable=True)
            if services is not None:
                with services:
                    writer.remove_subtree(services, format_id(package.service_id))
