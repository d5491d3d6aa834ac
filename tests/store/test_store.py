"""Tests for the configuration store and its handles.

Tests cover:
- Read-only, restricted and simulate policies
- Handle and store lifetime (closed handles raise)
- Virtual handles for keys a simulated run would create
- Counting of real and simulated writes
- Missing keys and values on delete
- The YAML store file backend
"""

import logging

import pytest
import yaml

from registrar.base.errors import (
    DisposedHandleError,
    MissingNodeError,
    ReadOnlyViolationError,
    RestrictedAccessError,
)
from registrar.base.results import StoreCounters
from registrar.store import store as store_module
from registrar.store.backends import MemoryBackend, MemoryRef, Scope, YamlFileBackend
from registrar.store.store import ConfigurationStore, root_key_name


@pytest.fixture
def backend():
    backend = MemoryBackend()
    backend.add_key(Scope.LOCAL_MACHINE, r"Software\Vendor", {"Installed": 1})
    backend.add_key(Scope.LOCAL_MACHINE, r"Software\Vendor\Product\Child")
    return backend


class TestReadOnlyPolicy:
    """A read-only store rejects every write before it reaches the backend."""

    def test_create_child_raises(self, backend):
        with ConfigurationStore(backend, read_only=True) as store:
            with pytest.raises(ReadOnlyViolationError):
                store.local_machine.create_child(r"Software\New", StoreCounters())

    def test_open_for_writing_raises(self, backend):
        with ConfigurationStore(backend, read_only=True) as store:
            with pytest.raises(ReadOnlyViolationError):
                store.local_machine.open_child(r"Software\Vendor", writable=True)

    def test_set_value_raises_and_is_not_counted(self, backend):
        counters = StoreCounters()
        with ConfigurationStore(backend, read_only=True) as store:
            key = store.local_machine.open_child(r"Software\Vendor")
            with pytest.raises(ReadOnlyViolationError) as exc_info:
                key.set_value("Installed", 2, counters)
        assert "read-only" in str(exc_info.value)
        assert counters.total == 0
        vendor = backend.lookup(Scope.LOCAL_MACHINE, r"Software\Vendor")
        assert vendor["values"] == {"Installed": 1}

    def test_reads_are_allowed(self, backend):
        with ConfigurationStore(backend, read_only=True) as store:
            with store.local_machine.open_child(r"Software\Vendor") as key:
                assert key.get_value("Installed") == 1
                assert key.child_names() == ["Product"]


class TestLifetime:
    """Closed handles and stores refuse further use."""

    def test_closed_handle_raises(self, backend):
        with ConfigurationStore(backend) as store:
            key = store.local_machine.open_child(r"Software\Vendor")
            key.close()
            assert key.closed
            with pytest.raises(DisposedHandleError):
                key.get_value("Installed")
            with pytest.raises(DisposedHandleError):
                _ = key.name

    def test_close_is_idempotent(self, backend):
        with ConfigurationStore(backend) as store:
            key = store.local_machine.open_child(r"Software\Vendor")
            key.close()
            key.close()

    def test_closed_store_raises(self, backend):
        store = ConfigurationStore(backend)
        store.close()
        store.close()
        with pytest.raises(DisposedHandleError):
            _ = store.local_machine

    def test_hive_handles_are_cached_and_closed_with_store(self, backend):
        store = ConfigurationStore(backend)
        root = store.local_machine
        assert store.local_machine is root
        store.close()
        assert root.closed


class TestRestrictedPolicy:
    def test_native_access_is_restricted_by_default(self, backend):
        with ConfigurationStore(backend) as store:
            with pytest.raises(RestrictedAccessError):
                store.local_machine.unsafe_native()

    def test_native_access_when_unrestricted(self, backend):
        with ConfigurationStore(backend, restricted=False) as store:
            assert isinstance(store.local_machine.unsafe_native(), MemoryRef)


class TestSimulatePolicy:
    """Simulated writes are counted and logged but never reach the backend."""

    def test_create_missing_key_returns_virtual_handle(self, backend):
        counters = StoreCounters()
        before = backend.snapshot()
        with ConfigurationStore(backend, simulate=True) as store:
            with store.local_machine.create_child(r"Software\New\Deep", counters) as key:
                assert key.is_virtual
                assert not key.existed
                assert key.name == r"HKEY_LOCAL_MACHINE\Software\New\Deep"
                assert key.get_value("Anything", "fallback") == "fallback"
                assert key.child_names() == []
                assert key.open_child("Below") is None
                with key.create_child("Below", counters) as below:
                    assert below.is_virtual
                key.set_value("Name", "value", counters)

        assert counters.nodes_created == 2
        assert counters.values_set == 1
        assert backend.snapshot() == before

    def test_create_existing_key_opens_it(self, backend):
        counters = StoreCounters()
        with ConfigurationStore(backend, simulate=True) as store:
            with store.local_machine.create_child(r"Software\Vendor", counters) as key:
                assert not key.is_virtual
                assert key.existed
                assert key.get_value("Installed") == 1
        assert counters.nodes_created == 1

    def test_deletes_are_counted_not_performed(self, backend):
        counters = StoreCounters()
        before = backend.snapshot()
        with ConfigurationStore(backend, simulate=True) as store:
            with store.local_machine.open_child(r"Software\Vendor", writable=True) as key:
                key.delete_value("Installed", counters)
                key.delete_subtree("Product", counters)
                key.delete_value("Missing", counters)
        assert counters.values_deleted == 2
        assert counters.nodes_deleted == 1
        assert backend.snapshot() == before

    def test_same_counts_as_real_run(self, backend):
        def edit(store):
            counters = StoreCounters()
            with store.local_machine.create_child(r"Software\Vendor\Extra", counters) as key:
                key.set_value("A", "1", counters)
            with store.local_machine.open_child(r"Software\Vendor", writable=True) as key:
                key.delete_subtree("Product", counters)
            return counters

        with ConfigurationStore(MemoryBackend(backend.snapshot()), simulate=True) as store:
            simulated = edit(store)
        with ConfigurationStore(backend, simulate=False) as store:
            real = edit(store)
        assert simulated == real


class TestRealWrites:
    def test_create_and_set(self, backend):
        counters = StoreCounters()
        with ConfigurationStore(backend, simulate=False) as store:
            with store.local_machine.create_child(r"Software\New", counters) as key:
                assert not key.existed
                key.set_value("", "default", counters)
        assert backend.lookup(Scope.LOCAL_MACHINE, r"Software\New") == {
            "values": {"": "default"}
        }
        assert counters.nodes_created == 1
        assert counters.values_set == 1

    def test_names_are_case_insensitive(self, backend):
        with ConfigurationStore(backend, simulate=False) as store:
            with store.local_machine.open_child(r"SOFTWARE\vendor") as key:
                assert key.get_value("INSTALLED") == 1

    def test_delete_missing_value_raises_when_requested(self, backend):
        with ConfigurationStore(backend, simulate=False) as store:
            with store.local_machine.open_child(r"Software\Vendor", writable=True) as key:
                with pytest.raises(MissingNodeError) as exc_info:
                    key.delete_value("Missing", StoreCounters())
        assert exc_info.value.kind == "value"

    def test_delete_missing_key_tolerated(self, backend):
        counters = StoreCounters()
        with ConfigurationStore(backend, simulate=False) as store:
            with store.local_machine.open_child(r"Software\Vendor", writable=True) as key:
                key.delete_child("Missing", counters, throw_on_missing=False)
        assert counters.nodes_deleted == 1

    def test_delete_subtree(self, backend):
        with ConfigurationStore(backend, simulate=False) as store:
            with store.local_machine.open_child(r"Software\Vendor", writable=True) as key:
                key.delete_subtree("Product", StoreCounters())
        assert backend.lookup(Scope.LOCAL_MACHINE, r"Software\Vendor\Product") is None


class TestSupportedRoots:
    def test_only_user_and_machine_hives(self, backend):
        with ConfigurationStore(backend) as store:
            assert store.is_supported_root(store.local_machine)
            assert store.is_supported_root(store.current_user)
            assert not store.is_supported_root(store.root(Scope.CLASSES_ROOT))
            assert not store.is_supported_root(store.local_machine.open_child("Software"))
            assert not store.is_supported_root(None)

    def test_scope_root(self, backend):
        with ConfigurationStore(backend) as store:
            assert store.scope_root(per_user=True) is store.current_user
            assert store.scope_root(per_user=False) is store.local_machine

    def test_scope_parse(self):
        assert Scope.parse("HKEY_CURRENT_USER") is Scope.CURRENT_USER
        assert Scope.parse("local_machine") is Scope.LOCAL_MACHINE
        with pytest.raises(ValueError):
            Scope.parse("HKEY_NOWHERE")


class TestRootKeyName:
    def test_wow64_only_for_machine_hive_in_64bit_process(self, monkeypatch):
        monkeypatch.setattr(store_module, "is_64bit_process", lambda: True)
        assert root_key_name(per_user=False, wow64=True) == r"Software\Wow6432Node"
        assert root_key_name(per_user=True, wow64=True) == "Software"
        assert root_key_name(per_user=False, wow64=False) == "Software"

    def test_no_wow64_node_in_32bit_process(self, monkeypatch):
        monkeypatch.setattr(store_module, "is_64bit_process", lambda: False)
        assert root_key_name(per_user=False, wow64=True) == "Software"


class TestYamlFileBackend:
    def test_real_run_saves_changes(self, tmp_path):
        path = tmp_path / "store.yml"
        with ConfigurationStore(YamlFileBackend(path), simulate=False) as store:
            with store.local_machine.create_child(r"Software\Vendor", StoreCounters()) as key:
                key.set_value("Version", "1.0", StoreCounters())

        data = yaml.safe_load(path.read_text())
        vendor = data["HKEY_LOCAL_MACHINE"]["keys"]["Software"]["keys"]["Vendor"]
        assert vendor == {"values": {"Version": "1.0"}}

        reloaded = YamlFileBackend(path)
        assert reloaded.lookup(Scope.LOCAL_MACHINE, r"Software\Vendor")["values"] == {
            "Version": "1.0"
        }

    def test_simulated_run_does_not_save(self, tmp_path):
        path = tmp_path / "store.yml"
        with ConfigurationStore(YamlFileBackend(path), simulate=True) as store:
            store.local_machine.create_child(r"Software\Vendor", StoreCounters()).close()
        assert not path.exists()

    def test_save_is_logged_by_the_store_component(self, tmp_path, caplog):
        caplog.set_level(logging.DEBUG, logger="registrar.store")
        path = tmp_path / "store.yml"
        with ConfigurationStore(YamlFileBackend(path), simulate=False) as store:
            store.local_machine.create_child(r"Software\Vendor", StoreCounters()).close()

        [record] = [r for r in caplog.records if "Saved store" in r.getMessage()]
        assert record.name == "registrar.store"
        assert "Store: Saved store to" in record.getMessage()
