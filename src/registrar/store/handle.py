"""Policy-enforcing handle for one open key of the configuration store.

A :class:`StoreHandle` owns exactly one native key reference and carries the
three policy flags of the store that produced it:

- **simulate**: writes are skipped but still counted and logged, keys are
  never opened for writing, and creating a missing key yields a virtual
  handle instead of a real key
- **read_only**: every write, and every attempt to open a key for writing,
  raises :class:`~registrar.base.errors.ReadOnlyViolationError`
- **restricted**: the raw native reference is not reachable through
  :meth:`StoreHandle.unsafe_native`

Handles are context managers. Closing is idempotent, and every other method
raises :class:`~registrar.base.errors.DisposedHandleError` once the handle
is closed.

Every mutating method takes the :class:`~registrar.base.results.StoreCounters`
tally of the current operation and increments it whether or not the
mutation reached the backend.
"""

from collections.abc import Callable
from typing import Any

from registrar.base.errors import (
    DisposedHandleError,
    MissingNodeError,
    ReadOnlyViolationError,
    RestrictedAccessError,
    StoreError,
)
from registrar.base.results import StoreCounters
from registrar.utils.logger import get_logger

from .backends import Scope, StoreBackend

logger = get_logger("store")


class StoreHandle:
    """One open key of the configuration store.

    A *virtual* handle stands in for a key that a simulated run would have
    created. It answers :attr:`name` and :meth:`child_names` as if the key
    existed, returns no values, has no children to open and accepts (and
    counts) writes without performing them.

    :param backend: Backend that produced ``native``
    :param native: Native key reference, or None for a virtual handle
    :param name: Full display name of the key
    :param scope: Hive the key lives in
    :param existed: False when the key was created (or, when simulating,
        would have been created) by the call that returned this handle
    """

    def __init__(
        self,
        backend: StoreBackend,
        native: Any,
        name: str,
        scope: Scope,
        *,
        simulate: bool,
        read_only: bool,
        restricted: bool,
        existed: bool = True,
    ):
        self._backend = backend
        self._native = native
        self._name = name
        self._scope = scope
        self._simulate = simulate
        self._read_only = read_only
        self._restricted = restricted
        self._virtual = native is None
        self._closed = False
        self.existed = existed

    # ---- lifetime ----------------------------------------------------------

    def close(self) -> None:
        """Release the native reference. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        if self._native is not None:
            native, self._native = self._native, None
            self._backend.close(native)

    def __enter__(self) -> "StoreHandle":
        self._check_open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    # ---- identity ----------------------------------------------------------

    @property
    def name(self) -> str:
        self._check_open()
        return self._name

    @property
    def scope(self) -> Scope:
        self._check_open()
        return self._scope

    @property
    def is_virtual(self) -> bool:
        self._check_open()
        return self._virtual

    @property
    def simulate(self) -> bool:
        return self._simulate

    @property
    def read_only(self) -> bool:
        return self._read_only

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("virtual" if self._virtual else "open")
        return f"StoreHandle({self._name!r}, {state})"

    # ---- reads -------------------------------------------------------------

    def open_child(self, path: str, writable: bool = False) -> "StoreHandle | None":
        """Open an existing key below this one; None when it does not exist.

        Keys are never opened for writing while simulating, whatever
        ``writable`` says.
        """
        self._check_open()
        if writable:
            self._check_writable("open key for writing")
        if self._virtual:
            return None
        native = self._call(
            "open", path, self._backend.open, self._native, path, writable and not self._simulate
        )
        if native is None:
            return None
        return self._child(native, path)

    def get_value(self, name: str, default: Any = None) -> Any:
        self._check_open()
        if self._virtual:
            return default
        value = self._call("read", name, self._backend.get_value, self._native, name)
        return default if value is None else value

    def child_names(self) -> list[str]:
        self._check_open()
        if self._virtual:
            return []
        return self._call("list", "", self._backend.child_names, self._native)

    def unsafe_native(self) -> Any:
        """Return the raw backend reference, bypassing every policy flag."""
        self._check_open()
        if self._restricted:
            raise RestrictedAccessError(f"native access to {self._name} is restricted")
        return self._native

    # ---- writes ------------------------------------------------------------

    def create_child(self, path: str, counters: StoreCounters) -> "StoreHandle":
        """Create (or open) a key below this one and return a writable handle.

        While simulating, an existing key is opened read-only and a missing
        one is represented by a virtual handle. Either way the creation is
        counted.
        """
        self._check_open()
        self._check_writable("create key")
        try:
            existing = None
            if not self._virtual:
                existing = self._call("open", path, self._backend.open, self._native, path, False)
            if self._simulate:
                logger.debug(f"create key (simulated): {self._join(path)}")
                if existing is not None:
                    return self._child(existing, path)
                return self._child(None, path, existed=False)
            if self._virtual:
                raise StoreError(f"cannot create key below virtual key {self._name}")
            if existing is not None:
                self._backend.close(existing)
            logger.debug(f"create key: {self._join(path)}")
            native = self._call("create", path, self._backend.create, self._native, path)
            return self._child(native, path, existed=existing is not None)
        finally:
            counters.nodes_created += 1

    def set_value(self, name: str, value: Any, counters: StoreCounters) -> None:
        self._check_open()
        self._check_writable("set value")
        logger.debug(f"set value{self._suffix()}: {self._name}, {name!r} = {value!r}")
        if not self._simulate and not self._virtual:
            self._call("write", name, self._backend.set_value, self._native, name, value)
        counters.values_set += 1

    def delete_value(
        self, name: str, counters: StoreCounters, throw_on_missing: bool = True
    ) -> None:
        self._check_open()
        self._check_writable("delete value")
        logger.debug(f"delete value{self._suffix()}: {self._name}, {name!r}")
        if not self._simulate and not self._virtual:
            self._delete("value", name, self._backend.delete_value, throw_on_missing)
        counters.values_deleted += 1

    def delete_child(
        self, path: str, counters: StoreCounters, throw_on_missing: bool = True
    ) -> None:
        """Delete an empty key below this one."""
        self._check_open()
        self._check_writable("delete key")
        logger.debug(f"delete key{self._suffix()}: {self._join(path)}")
        if not self._simulate and not self._virtual:
            self._delete("key", path, self._backend.delete_key, throw_on_missing)
        counters.nodes_deleted += 1

    def delete_subtree(
        self, path: str, counters: StoreCounters, throw_on_missing: bool = True
    ) -> None:
        """Delete a key below this one together with all of its descendants."""
        self._check_open()
        self._check_writable("delete key tree")
        logger.debug(f"delete key tree{self._suffix()}: {self._join(path)}")
        if not self._simulate and not self._virtual:
            self._delete("key", path, self._backend.delete_tree, throw_on_missing)
        counters.nodes_deleted += 1

    # ---- internals ---------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise DisposedHandleError(self._name)

    def _check_writable(self, operation: str) -> None:
        if self._read_only:
            raise ReadOnlyViolationError(operation, self._name)

    def _join(self, path: str) -> str:
        return f"{self._name}\\{path}"

    def _suffix(self) -> str:
        return " (simulated)" if self._simulate else ""

    def _child(self, native: Any, path: str, existed: bool = True) -> "StoreHandle":
        return StoreHandle(
            self._backend,
            native,
            self._join(path),
            self._scope,
            simulate=self._simulate,
            read_only=self._read_only,
            restricted=self._restricted,
            existed=existed,
        )

    def _call(self, operation: str, target: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except OSError as e:
            where = self._join(target) if target else self._name
            raise StoreError(f"could not {operation} {where}: {e}") from e

    def _delete(
        self, kind: str, target: str, func: Callable[[Any, str], None], throw_on_missing: bool
    ) -> None:
        try:
            func(self._native, target)
        except FileNotFoundError as e:
            if throw_on_missing:
                raise MissingNodeError(self._join(target), kind) from e
        except OSError as e:
            raise StoreError(f"could not delete {kind} {self._join(target)}: {e}") from e
