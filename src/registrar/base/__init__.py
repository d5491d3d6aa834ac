"""Base types shared across registrar: the exception hierarchy and result containers."""

from .errors import (
    ConfigurationError,
    ContractViolationError,
    DisposedHandleError,
    ImageFormatError,
    MissingNodeError,
    ReadOnlyViolationError,
    RegistrarError,
    RestrictedAccessError,
    StoreError,
)
from .results import FileCounters, MatrixResult, OperationResult, StoreCounters

__all__ = [
    "RegistrarError",
    "ConfigurationError",
    "StoreError",
    "ContractViolationError",
    "DisposedHandleError",
    "ReadOnlyViolationError",
    "RestrictedAccessError",
    "MissingNodeError",
    "ImageFormatError",
    "StoreCounters",
    "FileCounters",
    "OperationResult",
    "MatrixResult",
]
