"""Tests for DbProviderFactory registration in machine.config."""

import xml.etree.ElementTree as ET

import pytest

from registrar.catalog.catalog import build_catalog
from registrar.engine.context import OperationContext
from registrar.engine.matrix import MatrixEngine
from registrar.engine.probes import MachineConfigProbe
from registrar.operations import ProviderFactoryOperation
from registrar.operations.base import OperationAborted
from registrar.operations.provider_factory import (
    add_provider,
    factories_element,
    load_document,
    remove_provider,
)

ATTRIBUTES = {
    "name": "SQLite Data Provider",
    "invariant": "System.Data.SQLite",
    "description": ".NET Framework Data Provider for SQLite",
    "type": "System.Data.SQLite.SQLiteFactory, System.Data.SQLite",
}


def providers(root, tag="add", invariant="System.Data.SQLite"):
    factories = factories_element(root)
    if factories is None:
        return []
    return [e for e in factories.findall(tag) if e.get("invariant") == invariant]


class TestAddProvider:
    def test_creates_missing_sections(self):
        root = ET.fromstring("<configuration/>")
        assert add_provider(root, ATTRIBUTES)
        [element] = providers(root)
        assert element.attrib == ATTRIBUTES

    def test_second_add_is_clean(self):
        root = ET.fromstring("<configuration/>")
        add_provider(root, ATTRIBUTES)
        assert not add_provider(root, ATTRIBUTES)
        assert len(providers(root)) == 1

    def test_first_entry_of_an_empty_section_is_indented(self):
        root = ET.fromstring(
            "<configuration><system.data>"
            "<DbProviderFactories>\n    </DbProviderFactories>"
            "</system.data></configuration>"
        )
        add_provider(root, ATTRIBUTES)
        factories = factories_element(root)
        assert factories.text == "\n      "
        assert factories[0].tail == "\n    "

    def test_updates_in_place_and_drops_duplicates(self):
        root = ET.fromstring(
            "<configuration><system.data><DbProviderFactories>"
            '<remove invariant="System.Data.SQLite" />'
            '<add name="old" invariant="System.Data.SQLite" type="Old" />'
            '<add name="older" invariant="System.Data.SQLite" type="Older" />'
            '<add name="other" invariant="Other" type="Other" />'
            "</DbProviderFactories></system.data></configuration>"
        )
        assert add_provider(root, ATTRIBUTES)
        [element] = providers(root)
        assert element.get("type") == ATTRIBUTES["type"]
        assert providers(root, "remove") == []
        assert len(providers(root, invariant="Other")) == 1


class TestRemoveProvider:
    def test_removes_add_and_remove_elements(self):
        root = ET.fromstring("<configuration/>")
        add_provider(root, ATTRIBUTES)
        ET.SubElement(factories_element(root), "remove", invariant="System.Data.SQLite")
        assert remove_provider(root, "System.Data.SQLite")
        assert providers(root) == []
        assert providers(root, "remove") == []

    def test_nothing_to_remove(self):
        assert not remove_provider(ET.fromstring("<configuration/>"), "System.Data.SQLite")


class TestLoadDocument:
    def test_keeps_comments(self, machine):
        path = machine.framework_directory / "v4.0.30319" / "Config" / "machine.config"
        document = load_document(path)
        comments = [e for e in document.getroot().iter() if e.tag is ET.Comment]
        assert len(comments) == 1

    def test_malformed_file_aborts(self, tmp_path):
        path = tmp_path / "machine.config"
        path.write_text("<configuration>")
        with pytest.raises(OperationAborted, match="could not parse"):
            load_document(path)


class TestProviderFactoryOperation:
    """Run through the engine against the machine's .NET 4.0 machine.config."""

    def run(self, machine, install=True, simulate=False):
        config = machine.config(install=install, simulate=simulate)
        with machine.store(simulate=simulate) as store:
            context = OperationContext.from_config(store, config)
            catalog = build_catalog(config, store.local_machine)
            return MatrixEngine().run(
                catalog, MachineConfigProbe(), ProviderFactoryOperation(), context
            )

    @pytest.fixture
    def machine_config(self, machine):
        return machine.framework_directory / "v4.0.30319" / "Config" / "machine.config"

    def test_install_writes_file(self, machine, machine_config):
        result = self.run(machine)
        assert result.success
        assert result.invoked == [".NETFramework v4.0.30319"]
        assert result.files.files_modified == 1

        root = ET.parse(machine_config).getroot()
        [element] = providers(root)
        assert element.get("type") == (
            "System.Data.SQLite.SQLiteFactory, System.Data.SQLite, Version=1.0.89.0, "
            "Culture=neutral, PublicKeyToken=b77a5c561934e089"
        )
        assert len(providers(root, invariant="System.Data.Odbc")) == 1

    def test_install_is_idempotent(self, machine, machine_config):
        self.run(machine)
        content = machine_config.read_bytes()
        second = self.run(machine)
        assert not second.changed
        assert second.files.files_modified == 0
        assert machine_config.read_bytes() == content

    def test_simulated_install_leaves_file_alone(self, machine, machine_config):
        content = machine_config.read_bytes()
        result = self.run(machine, simulate=True)
        assert result.changed
        assert result.files.files_modified == 1
        assert machine_config.read_bytes() == content

    def test_uninstall(self, machine, machine_config):
        self.run(machine)
        result = self.run(machine, install=False)
        assert result.success
        assert providers(ET.parse(machine_config).getroot()) == []

    def test_uninstall_when_never_installed(self, machine, machine_config):
        content = machine_config.read_bytes()
        result = self.run(machine, install=False)
        assert result.success
        assert not result.changed
        assert machine_config.read_bytes() == content

    def test_new_provider_is_indented_like_its_siblings(self, machine, machine_config):
        self.run(machine)
        lines = machine_config.read_text(encoding="utf-8").splitlines()

        [added] = [line for line in lines if 'invariant="System.Data.SQLite"' in line]
        [odbc] = [line for line in lines if 'invariant="System.Data.Odbc"' in line]
        assert added.startswith('      <add name="SQLite Data Provider"')
        assert odbc.startswith("      <add ")
        assert "    </DbProviderFactories>" in lines

    def test_uninstall_restores_the_original_layout(self, machine, machine_config):
        # The XML declaration is rewritten with single quotes
        original = machine_config.read_text(encoding="utf-8").splitlines()[1:]
        self.run(machine)
        self.run(machine, install=False)
        assert machine_config.read_text(encoding="utf-8").splitlines()[1:] == original
