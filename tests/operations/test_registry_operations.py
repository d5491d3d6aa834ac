"""Tests for the store-backed registration operations.

Each operation is run through the matrix engine against a seeded
:class:`~tests.conftest.FakeMachine`, the same way the orchestrator runs it.
"""

import pytest

from registrar.base.errors import ReadOnlyViolationError
from registrar.catalog.catalog import build_catalog
from registrar.config_models import InstallFlags
from registrar.engine.context import OperationContext
from registrar.engine.matrix import MatrixEngine
from registrar.engine.probes import IdeProbe, RuntimeRegistryProbe
from registrar.operations import (
    AssemblyFoldersOperation,
    IdeDataProviderOperation,
    IdeDataSourceOperation,
    IdePackageOperation,
    VsPackageInfo,
    format_id,
)
from registrar.operations.base import StoreWriter
from registrar.store.backends import Scope

from tests.conftest import IDE_ROOT, RUNTIME_ROOT, FakeMachine

FOLDERS = f"{RUNTIME_ROOT}\\Microsoft\\.NETFramework\\v4.0.30319\\AssemblyFoldersEx"
DEVICE_FOLDERS = (
    f"{RUNTIME_ROOT}\\Microsoft\\.NETCompactFramework\\v2.0.0.0\\PocketPC\\AssemblyFoldersEx"
)
IDE_KEY = f"{IDE_ROOT}\\Microsoft\\VisualStudio\\10.0"
PACKAGE_ID = "{dcbe6c8d-0e57-4099-a183-98ff74c64d9c}"
SERVICE_ID = "{dcbe6c8d-0e57-4099-a183-98ff74c64d9d}"
DATA_SOURCE_ID = "{0ebaab6e-ca80-4b4a-8ddf-cbe6bf058c71}"
DATA_PROVIDER_ID = "{0ebaab6e-ca80-4b4a-8ddf-cbe6bf058c70}"


def run(machine, operation, probe, install=True, simulate=False, wow64=False, **overrides):
    """Run one operation across the machine's catalog and return the matrix result."""
    config = machine.config(install=install, simulate=simulate, **overrides)
    with machine.store(simulate=simulate) as store:
        context = OperationContext.from_config(store, config, VsPackageInfo.from_config(config))
        if wow64:
            context = context.with_wow64(True)
        catalog = build_catalog(config, store.scope_root(config.per_user))
        return MatrixEngine().run(catalog, probe, operation, context)


class TestFormatId:
    def test_lower_case_in_braces(self):
        assert format_id(VsPackageInfo(assembly=None).package_id) == PACKAGE_ID


class TestAssemblyFolders:
    def test_install_registers_every_runtime(self, machine):
        result = run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe())

        assert result.success
        assert result.changed
        expected = {"values": {"": str(machine.bin_directory)}}
        assert machine.lookup(f"{FOLDERS}\\System.Data.SQLite") == expected
        assert machine.lookup(f"{DEVICE_FOLDERS}\\System.Data.SQLite") == expected

    def test_install_removes_legacy_key(self, machine):
        machine.backend.add_key(Scope.LOCAL_MACHINE, f"{FOLDERS}\\SQLite", {"": "old"})
        result = run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe())
        assert result.success
        assert machine.lookup(f"{FOLDERS}\\SQLite") is None

    def test_install_twice_changes_nothing(self, machine):
        run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe())
        second = run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe())
        assert second.success
        assert not second.changed
        assert second.counters.total == 0

    def test_uninstall(self, machine):
        run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe())
        result = run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe(), install=False)
        assert result.success
        assert result.counters.nodes_deleted == 2
        assert machine.lookup(f"{FOLDERS}\\System.Data.SQLite") is None
        assert machine.lookup(FOLDERS) == {}

    def test_uninstall_when_never_installed(self, machine):
        result = run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe(), install=False)
        assert result.success
        assert not result.changed
        assert result.counters.total == 0

    def test_simulated_install_counts_like_real_install(self, machine, tmp_path):
        twin = FakeMachine(tmp_path / "twin")
        twin.add_runtime("v4.0.30319")
        twin.add_compact("v2.0.0.0", "PocketPC")

        before = machine.snapshot()
        simulated = run(machine, AssemblyFoldersOperation(), RuntimeRegistryProbe(), simulate=True)
        real = run(twin, AssemblyFoldersOperation(), RuntimeRegistryProbe())

        assert machine.snapshot() == before
        assert simulated.changed and real.changed
        assert simulated.counters == real.counters
        assert simulated.invoked == real.invoked

    def test_read_only_store_raises(self, machine):
        config = machine.config()
        with machine.store(read_only=True) as store:
            context = OperationContext.from_config(store, config)
            catalog = build_catalog(config, store.local_machine)
            with pytest.raises(ReadOnlyViolationError):
                MatrixEngine().run(
                    catalog, RuntimeRegistryProbe(), AssemblyFoldersOperation(), context
                )


class TestIdePackage:
    def test_install(self, machine):
        result = run(machine, IdePackageOperation(), IdeProbe(), wow64=True)
        assert result.success
        assert result.invoked == ["Visual Studio 10.0"]

        package = machine.lookup(f"{IDE_KEY}\\Packages\\{PACKAGE_ID}")
        values = package["values"]
        assert values[""] == "System.Data.SQLite Designer Package"
        assert values["Class"] == "SQLite.Designer.SQLitePackage"
        assert values["CodeBase"] == str(machine.bin_directory / "SQLite.Designer.dll")
        assert values["ID"] == 400
        assert values["InprocServer32"] == str(machine.system_directory / "mscoree.dll")
        assert package["keys"]["Toolbox"] == {"values": {"Default Items": 3}}

        menus = machine.lookup(f"{IDE_KEY}\\Menus")["values"]
        assert menus[PACKAGE_ID] == ", 1000, 3"
        service = machine.lookup(f"{IDE_KEY}\\Services\\{SERVICE_ID}")["values"]
        assert service == {"": PACKAGE_ID, "Name": "System.Data.SQLite Designer Service"}

    def test_uninstall(self, machine):
        run(machine, IdePackageOperation(), IdeProbe(), wow64=True)
        result = run(machine, IdePackageOperation(), IdeProbe(), install=False, wow64=True)
        assert result.success
        assert machine.lookup(f"{IDE_KEY}\\Packages\\{PACKAGE_ID}") is None
        assert machine.lookup(f"{IDE_KEY}\\Services\\{SERVICE_ID}") is None
        assert machine.lookup(f"{IDE_KEY}\\Menus") == {}

    def test_missing_packages_key_fails(self, machine):
        machine.backend.delete_tree(
            machine.backend.root(Scope.LOCAL_MACHINE), f"{IDE_KEY}\\Packages"
        )
        result = run(machine, IdePackageOperation(), IdeProbe(), wow64=True)
        assert not result.success
        assert result.error == (
            f"could not open registry key: HKEY_LOCAL_MACHINE\\{IDE_KEY}\\Packages"
        )


class TestIdeDataSource:
    def test_install_and_uninstall(self, machine):
        result = run(machine, IdeDataSourceOperation(), IdeProbe(), wow64=True)
        assert result.success

        source = machine.lookup(f"{IDE_KEY}\\DataSources\\{DATA_SOURCE_ID}")
        assert source["values"] == {
            "": "System.Data.SQLite Database File",
            "DefaultProvider": DATA_PROVIDER_ID,
        }
        assert DATA_PROVIDER_ID in source["keys"]["SupportingProviders"]["keys"]

        run(machine, IdeDataSourceOperation(), IdeProbe(), install=False, wow64=True)
        assert machine.lookup(f"{IDE_KEY}\\DataSources\\{DATA_SOURCE_ID}") is None


class TestIdeDataProvider:
    def test_install_without_shared_cache(self, machine):
        run(machine, IdeDataProviderOperation(), IdeProbe(), wow64=True)
        provider = machine.lookup(f"{IDE_KEY}\\DataProviders\\{DATA_PROVIDER_ID}")
        values = provider["values"]

        assert "Assembly" not in values
        assert values["InvariantName"] == "System.Data.SQLite"
        assert values["AssociatedSource"] == DATA_SOURCE_ID
        assert values["FactoryService"] == SERVICE_ID
        assert values["Technology"] == "{77ab9a9d-78b9-4ba7-91ac-873f5338f1d2}"
        assert sorted(provider["keys"]["SupportedObjects"]["keys"]) == [
            "DataConnectionProperties",
            "DataConnectionSupport",
            "DataConnectionUIControl",
            "DataObjectSupport",
            "DataViewSupport",
        ]

    def test_install_with_shared_cache_names_assembly(self, machine):
        run(
            machine,
            IdeDataProviderOperation(),
            IdeProbe(),
            wow64=True,
            install_flags=InstallFlags.ALL,
        )
        values = machine.lookup(f"{IDE_KEY}\\DataProviders\\{DATA_PROVIDER_ID}")["values"]
        assert values["Assembly"] == (
            "SQLite.Designer, Version=1.0.89.0, Culture=neutral, PublicKeyToken=b77a5c561934e089"
        )

    def test_uninstall_when_never_installed(self, machine):
        result = run(machine, IdeDataProviderOperation(), IdeProbe(), install=False, wow64=True)
        assert result.success
        assert not result.changed


class TestStoreWriter:
    def test_ensure_value_skips_equal_value(self, machine):
        with machine.store() as store:
            writer = StoreWriter(OperationContext(store))
            with store.local_machine.open_child(IDE_KEY, writable=True) as key:
                writer.ensure_value(key, "InstallDir", key.get_value("InstallDir"))
                assert not writer.side_effect
                writer.ensure_value(key, "Extra", 1)
        assert writer.side_effect
        assert writer.counters.values_set == 1

    def test_value_type_change_is_written(self, machine):
        machine.backend.add_key(Scope.LOCAL_MACHINE, IDE_KEY, {"Number": "3"})
        with machine.store() as store:
            writer = StoreWriter(OperationContext(store))
            with store.local_machine.open_child(IDE_KEY, writable=True) as key:
                writer.ensure_value(key, "Number", 3)
                assert key.get_value("Number") == 3
        assert writer.counters.values_set == 1
