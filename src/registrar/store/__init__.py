"""Configuration store: native backends, the policy-enforcing facade and its handles."""

from .backends import (
    MemoryBackend,
    Scope,
    StoreBackend,
    WinregBackend,
    YamlFileBackend,
    default_backend,
)
from .handle import StoreHandle
from .store import ConfigurationStore, is_64bit_process, root_key_name

__all__ = [
    "ConfigurationStore",
    "StoreHandle",
    "StoreBackend",
    "MemoryBackend",
    "YamlFileBackend",
    "WinregBackend",
    "Scope",
    "default_backend",
    "root_key_name",
    "is_64bit_process",
]
