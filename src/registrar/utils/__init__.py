"""Utility Package.

Modules:
    config: Configuration file loading and dot-path access
    logger: Rich component loggers and the optional trace file
    assembly_info: Reads the runtime version recorded in a managed image
"""

from . import assembly_info, config, logger

__all__ = ["config", "logger", "assembly_info"]
