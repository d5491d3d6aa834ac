"""List the runtimes and IDEs the installer would consider.

Opens the store read-only, so this command never changes anything and does
not need ``--confirm``.
"""

import sys

import click
from rich.markup import escape
from rich.table import Table

from registrar.base.errors import ConfigurationError
from registrar.catalog.catalog import build_catalog
from registrar.cli import styles
from registrar.cli.styles import Messages, Styles
from registrar.config_models import build_config
from registrar.engine.context import OperationContext
from registrar.engine.probes import IdeProbe, RuntimeDirectoryProbe, RuntimeRegistryProbe
from registrar.store.backends import YamlFileBackend, default_backend
from registrar.store.store import ConfigurationStore


def probe_targets(store: ConfigurationStore, config) -> list[tuple[str, str, str, str, str]]:
    """Rows of (kind, target, key, status, location) for every catalog target."""
    root = store.scope_root(config.per_user)
    catalog = build_catalog(config, root)
    context = OperationContext.from_config(store, config)
    rows = []

    registry_probe = RuntimeRegistryProbe()
    directory_probe = RuntimeDirectoryProbe()
    for target in catalog.runtime_targets():
        presence = directory_probe(target, root, context)
        if presence is not None:
            status = "installed"
            location = str(presence.directory or "")
        elif registry_probe(target, root, context) is not None:
            status = "registry only"
            location = ""
        else:
            status = "missing"
            location = ""
        rows.append(("runtime", str(target), target.key_name(context.root_name), status, location))

    ide_context = context.with_wow64(True)
    ide_probe = IdeProbe()
    for target in catalog.ide_targets():
        presence = ide_probe(target, root, ide_context)
        rows.append(
            (
                "ide",
                str(target),
                target.key_name(ide_context.root_name),
                "installed" if presence is not None else "missing",
                str(presence.directory) if presence is not None else "",
            )
        )
    return rows


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file (default: registrar.yml or $REGISTRAR_CONFIG)",
)
@click.option("--per-user", is_flag=True, help="Probe the current-user hive")
@click.option("--wow64", is_flag=True, help="Probe runtimes in the 32-bit registry view")
@click.option(
    "--store-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Probe a YAML store file instead of the registry",
)
@click.option("--no-desktop", is_flag=True, help="Skip the desktop .NET Framework")
@click.option("--no-compact", is_flag=True, help="Skip the .NET Compact Framework")
def targets(config_path, per_user, wow64, store_file, no_desktop, no_compact):
    """Show which runtimes and IDEs are installed.

    Examples:

    \b
      registrar targets
      registrar targets --per-user --no-compact
      registrar targets --store-file registry.yml
    """
    overrides = {
        "per_user": per_user or None,
        "wow64": wow64 or None,
        "store_file": store_file,
        "no_desktop": no_desktop or None,
        "no_compact": no_compact or None,
    }
    try:
        config = build_config(overrides, config_path)
    except ConfigurationError as e:
        styles.console.print(Messages.error(escape(str(e))))
        sys.exit(1)

    backend = YamlFileBackend(config.store_file) if config.store_file else default_backend()
    with ConfigurationStore(backend, simulate=True, read_only=True) as store:
        rows = probe_targets(store, config)

    table = Table(title="Registration targets", border_style=Styles.BORDER)
    table.add_column("Kind", style=Styles.SECONDARY)
    table.add_column("Target", style=Styles.PRIMARY)
    table.add_column("Key", style=Styles.PATH)
    table.add_column("Status")
    table.add_column("Location", style=Styles.PATH)
    for kind, target, key, status, location in rows:
        table.add_row(kind, target, key, Messages.status(status), location)
    styles.console.print(table)

    installed = sum(1 for row in rows if row[3] == "installed")
    styles.console.print(Messages.info(f"{installed} of {len(rows)} targets installed"))
