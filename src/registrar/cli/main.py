"""Main CLI entry point for registrar.

Commands are imported only when invoked, so ``registrar --help`` stays fast
and does not touch the registry.
"""

import importlib
import sys

import click

from registrar import __version__

# Reconfigure the Windows console so status symbols (✓, ✗) print
if sys.platform == "win32":
    try:
        import io

        if sys.stdout.encoding.lower() != "utf-8":
            sys.stdout = io.TextIOWrapper(
                sys.stdout.buffer, encoding="utf-8", errors="replace", line_buffering=True
            )
        if sys.stderr.encoding.lower() != "utf-8":
            sys.stderr = io.TextIOWrapper(
                sys.stderr.buffer, encoding="utf-8", errors="replace", line_buffering=True
            )
    except (AttributeError, OSError):
        pass


class LazyGroup(click.Group):
    """Click group that lazily loads subcommands only when invoked."""

    # command name -> (module, attribute)
    commands_map = {
        "install": ("registrar.cli.install_cmd", "install"),
        "uninstall": ("registrar.cli.install_cmd", "uninstall"),
        "targets": ("registrar.cli.targets_cmd", "targets"),
    }

    def get_command(self, ctx, cmd_name):
        if cmd_name not in self.commands_map:
            return None
        module_name, attribute = self.commands_map[cmd_name]
        return getattr(importlib.import_module(module_name), attribute)

    def list_commands(self, ctx):
        return list(self.commands_map)


@click.group(cls=LazyGroup)
@click.version_option(version=__version__, prog_name="registrar")
def cli():
    """registrar - register the SQLite data provider with .NET and Visual Studio.

    Every command simulates by default; pass --simulate false together with
    --confirm to change the system.

    Examples:

    \b
      registrar targets                       List runtimes and IDEs found
      registrar install --confirm             Simulate an installation
      registrar install --confirm --simulate false
      registrar uninstall --confirm --simulate false --per-user
    """
    from .styles import initialize_theme_from_config

    initialize_theme_from_config()


def main():
    """Entry point for the registrar CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nInterrupted.", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
