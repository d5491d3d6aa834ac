"""Registrar - database provider registration tool.

Registers a database provider component with the shared assembly cache,
the per-runtime assembly lookup folders, the per-runtime machine
configuration files and the extension registry of installed IDEs, and
reverses every one of those registrations.

This package contains:
- A policy-enforcing wrapper around a hierarchical key/value store
- The catalog of runtime and IDE targets
- The matrix engine that visits every installed target
- One operation module per registration surface
- Configuration, logging and the command line interface
"""

# Version information
__version__ = "0.4.2"

__all__ = ["__version__"]
