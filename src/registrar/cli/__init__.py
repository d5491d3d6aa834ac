"""Command-line interface for registrar.

Commands:
    - install: Register the provider with the runtimes and IDEs found
    - uninstall: Remove those registrations
    - targets: Show which runtimes and IDEs are installed

Commands are lazy-loaded so that ``--help`` does not open the registry.
"""

from .main import cli, main

__all__ = ["cli", "main"]
