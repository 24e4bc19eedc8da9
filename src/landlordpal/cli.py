"""
LandlordPal store maintenance CLI.

Usage:
    landlordpal status [--json]
    landlordpal migrate
    landlordpal export FILE
    landlordpal import FILE
    landlordpal backups
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from .backup import load_backup_file, write_backup_file
from .config import Config
from .core import LandlordStore
from .exceptions import LandlordPalError, ValidationError
from .logging_config import setup_logging


def _open_store(ctx: click.Context) -> LandlordStore:
    """Open the store for the selected data dir; closed when the command ends."""
    try:
        store = LandlordStore(ctx.obj["config"])
        store.initialize()
    except LandlordPalError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    ctx.call_on_close(store.close)
    return store


@click.group()
@click.version_option(package_name="landlordpal")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Data directory (default: $LANDLORDPAL_HOME or ~/.landlordpal)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, data_dir: Optional[Path], verbose: bool):
    """LandlordPal - local data store maintenance"""
    ctx.ensure_object(dict)
    try:
        config = Config(data_dir=data_dir) if data_dir else Config()
    except LandlordPalError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    ctx.obj["config"] = config
    setup_logging(verbose=verbose, log_file=config.log_file)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, as_json: bool):
    """Show schema version, encryption state and record counts."""
    store = _open_store(ctx)
    info = {
        "data_dir": str(store.config.data_dir),
        "schema_version": store.schema_version,
        "encryption": "degraded" if store.get_key_error() else "active",
        "key_error": store.get_key_error(),
        "counts": store.counts(),
    }

    if as_json:
        click.echo(json.dumps(info, indent=2))
        return

    click.echo(f"Data directory:  {info['data_dir']}")
    click.echo(f"Schema version:  {info['schema_version']}")
    click.echo(f"Encryption:      {info['encryption']}")
    if info["key_error"]:
        click.echo(f"Key error:       {info['key_error']}")
    click.echo("")
    for name, count in info["counts"].items():
        click.echo(f"  {name:<20} {count:>6}")


@cli.command()
@click.pass_context
def migrate(ctx: click.Context):
    """Apply pending schema migrations."""
    store = _open_store(ctx)
    result = store.last_migration

    if result.error:
        click.echo(f"Error: {result.error}", err=True)
        if result.backup_path:
            click.echo(f"Backup kept at {result.backup_path}", err=True)
        sys.exit(1)

    if result.migrated:
        click.echo(f"Migrated schema v{result.from_version} -> v{result.to_version}")
        if result.backup_path:
            click.echo(f"Backup: {result.backup_path}")
    else:
        click.echo(f"Schema already at v{result.to_version}")


@cli.command("export")
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def export_cmd(ctx: click.Context, file: Path):
    """Write every record to a JSON backup FILE."""
    store = _open_store(ctx)
    state = store.load_all()
    write_backup_file(file, state)
    total = sum(len(v) for v in state.values())
    click.echo(f"Exported {total} records to {file}")


@cli.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_cmd(ctx: click.Context, file: Path):
    """Replace all data with the contents of a JSON backup FILE."""
    try:
        snapshot = load_backup_file(file)
    except ValidationError as e:
        click.echo(f"Error: {e.message}", err=True)
        for err in e.errors:
            click.echo(f"  {err}", err=True)
        sys.exit(1)

    store = _open_store(ctx)
    try:
        result = store.replace_all(snapshot.to_state())
    except LandlordPalError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    if result.refused:
        click.echo(f"Refused: {result.reason}", err=True)
        sys.exit(1)
    click.echo(f"Imported {result.incoming} records (replaced {result.existing})")


@cli.command()
@click.pass_context
def backups(ctx: click.Context):
    """List retained pre-migration backups, newest first."""
    store = _open_store(ctx)
    found = store.list_backups()
    if not found:
        click.echo("No backups")
        return
    for path in found:
        click.echo(f"{path.name}  {path.stat().st_size:>10} bytes")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
