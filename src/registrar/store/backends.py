"""Native key/value store backends.

A backend exposes the raw operations of a hierarchical key/value store with
no policy at all: no simulate mode, no read-only checks, no counting. The
:class:`~registrar.store.store.ConfigurationStore` and its
:class:`~registrar.store.handle.StoreHandle` objects layer that policy on
top. Native references returned by a backend are opaque to everything
except the backend that produced them.

Backends:
    - **WinregBackend**: the Windows registry through :mod:`winreg`
    - **MemoryBackend**: a case-insensitive in-memory tree used by tests and
      by ``registrar targets --store-file``
    - **YamlFileBackend**: a MemoryBackend persisted to a YAML document

Missing keys and values are reported with :class:`FileNotFoundError`, the
same way :mod:`winreg` reports them, so handle code treats all backends
alike.
"""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from registrar.base.errors import StoreError
from registrar.utils.logger import get_logger

logger = get_logger("store")


class Scope(Enum):
    """Top-level store hives."""

    CLASSES_ROOT = "HKEY_CLASSES_ROOT"
    CURRENT_USER = "HKEY_CURRENT_USER"
    LOCAL_MACHINE = "HKEY_LOCAL_MACHINE"
    USERS = "HKEY_USERS"

    @classmethod
    def parse(cls, text: str) -> "Scope":
        """Accept either the hive name (``HKEY_CURRENT_USER``) or the member name."""
        for scope in cls:
            if text.upper() in (scope.value, scope.name, scope.value.replace("HKEY_", "HK")):
                return scope
        raise ValueError(f"unknown store scope: {text}")


def split_path(path: str) -> list[str]:
    return [part for part in path.split("\\") if part]


class StoreBackend(ABC):
    """Raw operations of a hierarchical key/value store."""

    @abstractmethod
    def root(self, scope: Scope) -> Any:
        """Return the native reference for a top-level hive."""

    @abstractmethod
    def open(self, parent: Any, path: str, writable: bool) -> Any | None:
        """Open an existing key below ``parent``; None when it does not exist."""

    @abstractmethod
    def create(self, parent: Any, path: str) -> Any:
        """Create a key below ``parent``, or open it writable if it already exists."""

    @abstractmethod
    def close(self, native: Any) -> None:
        pass

    @abstractmethod
    def get_value(self, native: Any, name: str) -> Any | None:
        pass

    @abstractmethod
    def set_value(self, native: Any, name: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete_value(self, native: Any, name: str) -> None:
        pass

    @abstractmethod
    def delete_key(self, parent: Any, path: str) -> None:
        """Delete an empty key. Raises FileNotFoundError when it is missing."""

    @abstractmethod
    def delete_tree(self, parent: Any, path: str) -> None:
        """Delete a key with all of its descendants."""

    @abstractmethod
    def child_names(self, native: Any) -> list[str]:
        pass

    def flush(self) -> None:
        """Persist pending changes. Backends that write through need not override."""


# ============================================================================
# WINDOWS REGISTRY
# ============================================================================


class WinregBackend(StoreBackend):
    """The Windows registry.

    Value types are chosen from the Python type: ``int`` becomes
    ``REG_DWORD``, ``bytes`` becomes ``REG_BINARY``, a list of strings becomes
    ``REG_MULTI_SZ`` and everything else is stored as ``REG_SZ``.
    """

    def __init__(self):
        import winreg

        self._winreg = winreg
        self._roots = {
            Scope.CLASSES_ROOT: winreg.HKEY_CLASSES_ROOT,
            Scope.CURRENT_USER: winreg.HKEY_CURRENT_USER,
            Scope.LOCAL_MACHINE: winreg.HKEY_LOCAL_MACHINE,
            Scope.USERS: winreg.HKEY_USERS,
        }

    def root(self, scope: Scope) -> Any:
        return self._roots[scope]

    def open(self, parent: Any, path: str, writable: bool) -> Any | None:
        access = self._winreg.KEY_READ
        if writable:
            access |= self._winreg.KEY_WRITE
        try:
            return self._winreg.OpenKey(parent, path, 0, access)
        except FileNotFoundError:
            return None

    def create(self, parent: Any, path: str) -> Any:
        return self._winreg.CreateKeyEx(parent, path, 0, self._winreg.KEY_ALL_ACCESS)

    def close(self, native: Any) -> None:
        # Predefined hive handles are plain integers and must not be closed
        if not isinstance(native, int):
            native.Close()

    def get_value(self, native: Any, name: str) -> Any | None:
        try:
            value, _ = self._winreg.QueryValueEx(native, name)
        except FileNotFoundError:
            return None
        return value

    def set_value(self, native: Any, name: str, value: Any) -> None:
        if isinstance(value, bool):
            value = int(value)
        if isinstance(value, int):
            kind = self._winreg.REG_DWORD
        elif isinstance(value, bytes):
            kind = self._winreg.REG_BINARY
        elif isinstance(value, (list, tuple)):
            kind = self._winreg.REG_MULTI_SZ
            value = [str(item) for item in value]
        else:
            kind = self._winreg.REG_SZ
            value = str(value)
        self._winreg.SetValueEx(native, name, 0, kind, value)

    def delete_value(self, native: Any, name: str) -> None:
        self._winreg.DeleteValue(native, name)

    def delete_key(self, parent: Any, path: str) -> None:
        self._winreg.DeleteKey(parent, path)

    def delete_tree(self, parent: Any, path: str) -> None:
        # DeleteKey refuses keys that still have subkeys
        key = self._winreg.OpenKey(parent, path, 0, self._winreg.KEY_ALL_ACCESS)
        try:
            for child in self.child_names(key):
                self.delete_tree(key, child)
        finally:
            key.Close()
        self._winreg.DeleteKey(parent, path)

    def child_names(self, native: Any) -> list[str]:
        names = []
        index = 0
        while True:
            try:
                names.append(self._winreg.EnumKey(native, index))
            except OSError:
                break
            index += 1
        return names


# ============================================================================
# IN-MEMORY TREE
# ============================================================================


class _Node:
    __slots__ = ("name", "values", "children")

    def __init__(self, name: str):
        self.name = name
        # Lower-cased name -> (original name, value)
        self.values: dict[str, tuple[str, Any]] = {}
        self.children: dict[str, _Node] = {}


class MemoryRef:
    """Native reference into a :class:`MemoryBackend` tree."""

    __slots__ = ("node", "writable", "closed")

    def __init__(self, node: _Node, writable: bool):
        self.node = node
        self.writable = writable
        self.closed = False


class MemoryBackend(StoreBackend):
    """Case-insensitive in-memory key/value tree.

    References opened without write access reject writes with
    :class:`PermissionError`, mirroring the access checks of the real
    registry. That makes a simulated run that accidentally writes fail
    loudly instead of silently mutating the tree.

    The tree can be seeded from, and dumped to, a plain nested mapping::

        {"HKEY_LOCAL_MACHINE": {"keys": {"Software": {"values": {...}, "keys": {...}}}}}
    """

    def __init__(self, tree: dict[str, Any] | None = None):
        self._roots = {scope: _Node(scope.value) for scope in Scope}
        self.dirty = False
        if tree:
            self.load(tree)
            self.dirty = False

    # ---- tree helpers ----------------------------------------------------

    def _walk(self, node: _Node, path: str, create: bool = False) -> _Node | None:
        for part in split_path(path):
            child = node.children.get(part.lower())
            if child is None:
                if not create:
                    return None
                child = _Node(part)
                node.children[part.lower()] = child
                self.dirty = True
            node = child
        return node

    def _split_leaf(self, parent: "MemoryRef", path: str) -> tuple[_Node, str]:
        parts = split_path(path)
        if not parts:
            raise ValueError("empty key path")
        container = self._walk(parent.node, "\\".join(parts[:-1]))
        if container is None or parts[-1].lower() not in container.children:
            raise FileNotFoundError(path)
        return container, parts[-1].lower()

    @staticmethod
    def _require_writable(ref: "MemoryRef", operation: str) -> None:
        if ref.closed:
            raise OSError(f"cannot {operation}: reference is closed")
        if not ref.writable:
            raise PermissionError(
                f"cannot {operation}: key {ref.node.name} is not open for writing"
            )

    # ---- StoreBackend ----------------------------------------------------

    def root(self, scope: Scope) -> MemoryRef:
        return MemoryRef(self._roots[scope], writable=True)

    def open(self, parent: MemoryRef, path: str, writable: bool) -> MemoryRef | None:
        node = self._walk(parent.node, path)
        return MemoryRef(node, writable) if node is not None else None

    def create(self, parent: MemoryRef, path: str) -> MemoryRef:
        existing = self._walk(parent.node, path)
        if existing is not None:
            return MemoryRef(existing, writable=True)
        self._require_writable(parent, "create key")
        return MemoryRef(self._walk(parent.node, path, create=True), writable=True)

    def close(self, native: MemoryRef) -> None:
        native.closed = True

    def get_value(self, native: MemoryRef, name: str) -> Any | None:
        entry = native.node.values.get(name.lower())
        return entry[1] if entry is not None else None

    def set_value(self, native: MemoryRef, name: str, value: Any) -> None:
        self._require_writable(native, "set value")
        native.node.values[name.lower()] = (name, value)
        self.dirty = True

    def delete_value(self, native: MemoryRef, name: str) -> None:
        self._require_writable(native, "delete value")
        if name.lower() not in native.node.values:
            raise FileNotFoundError(name)
        del native.node.values[name.lower()]
        self.dirty = True

    def delete_key(self, parent: MemoryRef, path: str) -> None:
        self._require_writable(parent, "delete key")
        container, leaf = self._split_leaf(parent, path)
        if container.children[leaf].children:
            raise PermissionError(f"cannot delete key {path}: it has subkeys")
        del container.children[leaf]
        self.dirty = True

    def delete_tree(self, parent: MemoryRef, path: str) -> None:
        self._require_writable(parent, "delete key tree")
        container, leaf = self._split_leaf(parent, path)
        del container.children[leaf]
        self.dirty = True

    def child_names(self, native: MemoryRef) -> list[str]:
        return [child.name for child in native.node.children.values()]

    # ---- seeding and inspection ------------------------------------------

    def add_key(self, scope: Scope, path: str, values: dict[str, Any] | None = None) -> None:
        """Create a key (and its parents) directly, bypassing all policy."""
        node = self._walk(self._roots[scope], path, create=True)
        for name, value in (values or {}).items():
            node.values[name.lower()] = (name, value)
        self.dirty = True

    def lookup(self, scope: Scope, path: str) -> dict[str, Any] | None:
        """Return the dumped subtree at ``path``, or None when it does not exist."""
        node = self._walk(self._roots[scope], path)
        return self._dump(node) if node is not None else None

    def load(self, tree: dict[str, Any]) -> None:
        for scope_name, data in tree.items():
            scope = Scope.parse(scope_name)
            self._load_node(self._roots[scope], data or {})

    def _load_node(self, node: _Node, data: dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise StoreError(f"invalid store data under {node.name}: expected a mapping")
        for name, value in (data.get("values") or {}).items():
            node.values[str(name).lower()] = (str(name), value)
        for name, child_data in (data.get("keys") or {}).items():
            child = self._walk(node, str(name), create=True)
            self._load_node(child, child_data or {})

    def _dump(self, node: _Node) -> dict[str, Any]:
        dumped: dict[str, Any] = {}
        if node.values:
            dumped["values"] = {name: value for name, value in node.values.values()}
        if node.children:
            dumped["keys"] = {child.name: self._dump(child) for child in node.children.values()}
        return dumped

    def snapshot(self) -> dict[str, Any]:
        """Dump every non-empty hive as a plain nested mapping."""
        return {
            scope.value: self._dump(node)
            for scope, node in self._roots.items()
            if node.values or node.children
        }


class YamlFileBackend(MemoryBackend):
    """A :class:`MemoryBackend` loaded from and saved to a YAML document.

    Changes are written back by :meth:`flush`, which the store calls when it
    is closed, and only when something actually changed.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            try:
                with open(self.path) as f:
                    data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise StoreError(f"Error parsing store file {self.path}: {e}") from e
            if data is not None and not isinstance(data, dict):
                raise StoreError(f"Store file must contain a mapping: {self.path}")
            self.load(data or {})
            logger.debug(f"Loaded store from {self.path}")
        self.dirty = False

    def flush(self) -> None:
        if not self.dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(self.snapshot(), f, default_flow_style=False, sort_keys=False)
        self.dirty = False
        logger.debug(f"Saved store to {self.path}")


def default_backend() -> StoreBackend:
    """Return the native registry backend; only available on Windows."""
    import sys

    if sys.platform != "win32":
        raise StoreError(
            "the native registry is only available on Windows; use --store-file to "
            "operate on a YAML store instead"
        )
    return WinregBackend()
