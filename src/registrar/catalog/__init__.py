"""Target catalog: runtime and IDE target descriptors and the per-run catalog."""

from .catalog import TargetCatalog, build_catalog, ide_year
from .targets import (
    COMPACT_FAMILY,
    DESKTOP_FAMILY,
    IdeTarget,
    RuntimeTarget,
    TargetKind,
    Version,
)

__all__ = [
    "TargetCatalog",
    "build_catalog",
    "ide_year",
    "RuntimeTarget",
    "IdeTarget",
    "TargetKind",
    "Version",
    "DESKTOP_FAMILY",
    "COMPACT_FAMILY",
]
