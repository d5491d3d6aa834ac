"""Install and uninstall commands.

Both commands take the same options; they differ only in the direction of
the run. Every option falls back to the ``installer`` section of the
configuration file, then to the built-in default.
"""

import logging
import sys

import click
from rich.markup import escape
from rich.table import Table

from registrar.base.errors import ConfigurationError
from registrar.cli import styles
from registrar.cli.styles import Messages, Styles
from registrar.config_models import build_config, finalize_config
from registrar.orchestrator import RunSummary, run_installer
from registrar.utils.logger import attach_trace_file, detach_trace_files, set_log_level

# Options passed as boolean values ("--simulate false") rather than bare flags
BOOLEAN_OPTIONS = ("simulate", "throw_on_missing")

SUPPRESSION_FLAGS = (
    ("no_desktop", "Skip the desktop .NET Framework"),
    ("no_compact", "Skip the .NET Compact Framework"),
    ("no_netfx20", "Skip .NET Framework 2.0"),
    ("no_netfx35", "Skip .NET Framework 3.5"),
    ("no_netfx40", "Skip .NET Framework 4.0"),
    ("no_netfx45", "Skip .NET Framework 4.5"),
    ("no_netfx451", "Skip .NET Framework 4.5.1"),
    ("no_vs2005", "Skip Visual Studio 2005"),
    ("no_vs2008", "Skip Visual Studio 2008"),
    ("no_vs2010", "Skip Visual Studio 2010"),
    ("no_vs2012", "Skip Visual Studio 2012"),
    ("no_vs2013", "Skip Visual Studio 2013"),
)


def installer_options(func):
    """Attach the options shared by ``install`` and ``uninstall``."""
    for name, help_text in reversed(SUPPRESSION_FLAGS):
        func = click.option(f"--{name.replace('_', '-')}", name, is_flag=True, help=help_text)(
            func
        )

    options = [
        click.option(
            "--config",
            "config_path",
            type=click.Path(exists=True, dir_okay=False),
            help="Configuration file (default: registrar.yml or $REGISTRAR_CONFIG)",
        ),
        click.option(
            "--simulate",
            type=click.BOOL,
            default=None,
            help="Report what would change without changing anything (default: true)",
        ),
        click.option(
            "--throw-on-missing",
            type=click.BOOL,
            default=None,
            help="Fail when a value or key to delete is missing (default: true)",
        ),
        click.option("--confirm", is_flag=True, help="Confirm that the run may proceed"),
        click.option("--per-user", is_flag=True, help="Register for the current user only"),
        click.option("--wow64", is_flag=True, help="Use the 32-bit registry view"),
        click.option(
            "--install-flags",
            help='Surfaces to register, e.g. "All" or "AssemblyFolders, VsPackage"',
        ),
        click.option("--verbose", "-v", is_flag=True, help="Trace every store change"),
        click.option("--debug", is_flag=True, help="Show debug output"),
        click.option("--no-log", is_flag=True, help="Do not write a trace file"),
        click.option("--log-file", type=click.Path(dir_okay=False), help="Trace file to append to"),
        click.option(
            "--no-runtime-version",
            is_flag=True,
            help="Do not restrict targets by the core assembly's runtime version",
        ),
        click.option(
            "--directory",
            type=click.Path(file_okay=False),
            help="Directory holding the provider assemblies",
        ),
        click.option("--core-file-name", help="Core assembly file name"),
        click.option("--linq-file-name", help="LINQ assembly file name"),
        click.option("--ef6-file-name", help="Entity Framework 6 assembly file name"),
        click.option("--designer-file-name", help="Designer assembly file name"),
        click.option(
            "--system-directory",
            type=click.Path(file_okay=False),
            help="Directory holding mscoree.dll",
        ),
        click.option(
            "--store-file",
            type=click.Path(dir_okay=False),
            help="Operate on a YAML store file instead of the registry",
        ),
        click.option("--registry-version", help="Register every runtime under this version"),
        click.option("--config-version", help="Update machine.config of this version only"),
        click.option("--ide-version", help="Register with this IDE version only"),
        click.option("--ide-version-suffix", help="Suffix of the IDE root key, e.g. Exp"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def collect_overrides(options: dict) -> dict:
    """Turn parsed options into configuration overrides.

    Unset options become None so the configuration file still applies; bare
    flags only override when given.
    """
    overrides = {}
    for name, value in options.items():
        if name == "config_path":
            continue
        if isinstance(value, bool) and name not in BOOLEAN_OPTIONS and not value:
            value = None
        overrides[name] = value
    return overrides


def run_command(install: bool, options: dict) -> RunSummary:
    """Build, finalize and run a configuration; exits 1 on configuration errors."""
    config_path = options.get("config_path")
    try:
        config = build_config({**collect_overrides(options), "install": install}, config_path)
    except ConfigurationError as e:
        styles.console.print(Messages.error(escape(str(e))))
        sys.exit(1)

    if config.debug:
        set_log_level(logging.DEBUG)
    if not config.no_log:
        trace_path = attach_trace_file(config.log_file)
        styles.console.print(Messages.label_value("Trace file", str(trace_path)), style=Styles.DIM)

    try:
        config = finalize_config(config)
        return run_installer(config)
    except ConfigurationError as e:
        styles.console.print(Messages.error(escape(str(e))))
        sys.exit(1)
    finally:
        detach_trace_files()


def print_summary(summary: RunSummary) -> None:
    table = Table(title="Registration summary", border_style=Styles.BORDER)
    table.add_column("Surface", style=Styles.PRIMARY)
    table.add_column("Targets")
    table.add_column("Changed")
    table.add_column("Status")
    for name, result in summary.surfaces.items():
        table.add_row(
            name,
            ", ".join(result.invoked) or "-",
            "yes" if result.changed else "no",
            Messages.status("ok" if result.success else "failed"),
        )
    styles.console.print(table)
    styles.console.print(summary.counters.summary(), style=Styles.SECONDARY)
    styles.console.print(summary.files.summary(), style=Styles.SECONDARY)

    if summary.success:
        styles.console.print(Messages.success("Success."))
    else:
        styles.console.print(Messages.error(escape(summary.error or "Failure.")))


@click.command()
@installer_options
def install(**options):
    """Register the provider with every runtime and IDE found.

    Simulates by default; pass --confirm --simulate false to change the system.

    Examples:

    \b
      registrar install --confirm
      registrar install --confirm --simulate false --install-flags Framework
      registrar install --confirm --store-file registry.yml --simulate false
    """
    summary = run_command(True, options)
    print_summary(summary)
    sys.exit(summary.exit_code)


@click.command()
@installer_options
def uninstall(**options):
    """Remove the provider registrations made by ``install``.

    Missing registrations are skipped, so uninstalling twice is harmless.

    Examples:

    \b
      registrar uninstall --confirm
      registrar uninstall --confirm --simulate false --per-user
    """
    summary = run_command(False, options)
    print_summary(summary)
    sys.exit(summary.exit_code)
