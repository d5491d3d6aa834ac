"""Safety-enforcing facade over a hierarchical key/value store.

The :class:`ConfigurationStore` owns a backend, the policy flags applied to
every handle it hands out, and the cached hive handles for the whole run.
Its key operations take the parent handle explicitly and delegate to the
handle, which is where the policy is enforced.

Usage::

    with ConfigurationStore(MemoryBackend(), simulate=True) as store:
        counters = StoreCounters()
        with store.create_child(store.local_machine, r"Software\\Vendor", counters) as key:
            store.set_value(key, "Installed", 1, counters)
"""

import sys
from typing import Any

from registrar.base.errors import DisposedHandleError
from registrar.base.results import StoreCounters
from registrar.utils.logger import get_logger

from .backends import Scope, StoreBackend, default_backend
from .handle import StoreHandle

logger = get_logger("store")

SUPPORTED_SCOPES = (Scope.CURRENT_USER, Scope.LOCAL_MACHINE)

WOW64_NODE = "Wow6432Node"


def is_64bit_process() -> bool:
    return sys.maxsize > 2**32


def root_key_name(per_user: bool, wow64: bool) -> str:
    """Return the software root below a hive.

    The 32-bit compatibility view is only inserted for the machine hive, and
    only when running as a 64-bit process.
    """
    if not per_user and wow64 and is_64bit_process():
        return f"Software\\{WOW64_NODE}"
    return "Software"


class ConfigurationStore:
    """Policy-enforcing wrapper around a :class:`StoreBackend`.

    :param backend: Native backend; defaults to the Windows registry
    :param simulate: Count and log writes without performing them
    :param read_only: Reject every write with ReadOnlyViolationError
    :param restricted: Hide native references from :meth:`StoreHandle.unsafe_native`
    """

    def __init__(
        self,
        backend: StoreBackend | None = None,
        *,
        simulate: bool = True,
        read_only: bool = False,
        restricted: bool = True,
    ):
        self._backend = backend if backend is not None else default_backend()
        self._simulate = simulate
        self._read_only = read_only
        self._restricted = restricted
        self._roots: dict[Scope, StoreHandle] = {}
        self._closed = False

    # ---- policy ------------------------------------------------------------

    @property
    def simulate(self) -> bool:
        self._check_open()
        return self._simulate

    @property
    def read_only(self) -> bool:
        self._check_open()
        return self._read_only

    @property
    def restricted(self) -> bool:
        self._check_open()
        return self._restricted

    @property
    def backend(self) -> StoreBackend:
        self._check_open()
        return self._backend

    # ---- hives -------------------------------------------------------------

    def root(self, scope: Scope) -> StoreHandle:
        """Return the cached handle for a hive, opening it on first use."""
        self._check_open()
        handle = self._roots.get(scope)
        if handle is None:
            handle = StoreHandle(
                self._backend,
                self._backend.root(scope),
                scope.value,
                scope,
                simulate=self._simulate,
                read_only=self._read_only,
                restricted=self._restricted,
            )
            self._roots[scope] = handle
        return handle

    @property
    def current_user(self) -> StoreHandle:
        return self.root(Scope.CURRENT_USER)

    @property
    def local_machine(self) -> StoreHandle:
        return self.root(Scope.LOCAL_MACHINE)

    def scope_root(self, per_user: bool) -> StoreHandle:
        return self.current_user if per_user else self.local_machine

    def is_supported_root(self, handle: StoreHandle | None) -> bool:
        """True when ``handle`` is this store's current-user or local-machine hive."""
        if handle is None or handle.closed:
            return False
        return any(self._roots.get(scope) is handle for scope in SUPPORTED_SCOPES)

    # ---- key operations ----------------------------------------------------

    def open_child(
        self, parent: StoreHandle, path: str, writable: bool = False
    ) -> StoreHandle | None:
        self._check_open()
        return parent.open_child(path, writable)

    def create_child(
        self, parent: StoreHandle, path: str, counters: StoreCounters
    ) -> StoreHandle:
        self._check_open()
        return parent.create_child(path, counters)

    def get_value(self, handle: StoreHandle, name: str, default: Any = None) -> Any:
        self._check_open()
        return handle.get_value(name, default)

    def set_value(
        self, handle: StoreHandle, name: str, value: Any, counters: StoreCounters
    ) -> None:
        self._check_open()
        handle.set_value(name, value, counters)

    def delete_value(
        self,
        handle: StoreHandle,
        name: str,
        counters: StoreCounters,
        throw_on_missing: bool = True,
    ) -> None:
        self._check_open()
        handle.delete_value(name, counters, throw_on_missing)

    def delete_child(
        self,
        parent: StoreHandle,
        path: str,
        counters: StoreCounters,
        throw_on_missing: bool = True,
    ) -> None:
        self._check_open()
        parent.delete_child(path, counters, throw_on_missing)

    def delete_subtree(
        self,
        parent: StoreHandle,
        path: str,
        counters: StoreCounters,
        throw_on_missing: bool = True,
    ) -> None:
        self._check_open()
        parent.delete_subtree(path, counters, throw_on_missing)

    # ---- lifetime ----------------------------------------------------------

    def close(self) -> None:
        """Close the cached hive handles and persist backend changes.

        Nothing is persisted for simulated or read-only stores. Closing twice
        is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        for handle in self._roots.values():
            handle.close()
        self._roots.clear()
        if not self._simulate and not self._read_only:
            self._backend.flush()

    def __enter__(self) -> "ConfigurationStore":
        self._check_open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise DisposedHandleError(type(self).__name__)
