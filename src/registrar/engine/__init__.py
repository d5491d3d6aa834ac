"""Matrix engine, presence probes and the shared operation context."""

from .context import OperationContext
from .matrix import MatrixEngine, OperationCallback
from .probes import (
    IdeProbe,
    MachineConfigProbe,
    Presence,
    PresenceProbe,
    RuntimeDirectoryProbe,
    RuntimeRegistryProbe,
)

__all__ = [
    "MatrixEngine",
    "OperationCallback",
    "OperationContext",
    "Presence",
    "PresenceProbe",
    "RuntimeRegistryProbe",
    "RuntimeDirectoryProbe",
    "MachineConfigProbe",
    "IdeProbe",
]
