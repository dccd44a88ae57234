"""CLI entry point for depsources."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from depsources import __version__
from depsources.config import ConfigError, Settings
from depsources.lockfile import (
    DEFAULT_LOCKFILE_NAME,
    LockfileError,
    SourceLockfile,
    check_lockfile,
)
from depsources.manifest import ManifestError, load_manifest
from depsources.source_registry import SourceRegistry
from depsources.sources.base import SourceOptionsError
from depsources.sources.plugin import UnknownPluginSourceError

console = Console()

USER_ERRORS = (
    ConfigError,
    LockfileError,
    ManifestError,
    SourceOptionsError,
    UnknownPluginSourceError,
    FileNotFoundError,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_registry(ctx: click.Context, manifest: str) -> SourceRegistry:
    try:
        settings = Settings.load(ctx.obj.get("config_path"))
        return load_manifest(manifest, settings=settings)
    except USER_ERRORS as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _default_lockfile(manifest: str) -> Path:
    return Path(manifest).parent / DEFAULT_LOCKFILE_NAME


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: ~/.depsources/config.yaml)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: str | None):
    """depsources - declared package sources and their lockfile."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    _configure_logging(verbose)


@cli.command("list")
@click.argument("manifest", type=click.Path(dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_sources(ctx: click.Context, manifest: str, as_json: bool):
    """List the lock view of a manifest's sources."""
    registry = _load_registry(ctx, manifest)
    sources = registry.lock_sources()

    if as_json:
        output = [{**s.to_lock(), "display": str(s)} for s in sources]
        click.echo(json.dumps(output, indent=2, ensure_ascii=False))
        return

    table = Table(title="Sources")
    table.add_column("Type", style="cyan")
    table.add_column("Source")
    table.add_column("Default", style="yellow")

    default = registry.default_source
    for source in sources:
        marker = "✓" if source is default else ""
        table.add_row(source.kind, str(source), marker)

    console.print(table)


@cli.command()
@click.argument("manifest", type=click.Path(dir_okay=False))
@click.option(
    "--lockfile",
    "lockfile_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Lockfile to write (default: sources.lock.json next to the manifest)",
)
@click.option(
    "--multisource",
    is_flag=True,
    help="Collapse all registry remotes into a single locked source",
)
@click.pass_context
def lock(ctx: click.Context, manifest: str, lockfile_path: str | None, multisource: bool):
    """Write the lockfile for a manifest."""
    registry = _load_registry(ctx, manifest)
    if multisource:
        registry.enable_multisource()

    path = Path(lockfile_path) if lockfile_path else _default_lockfile(manifest)
    lockfile = SourceLockfile.from_registry(registry)
    lockfile.save(path)

    console.print(f"[green]✓ Locked {len(lockfile.sources)} sources to {path}[/green]")


@cli.command()
@click.argument("manifest", type=click.Path(dir_okay=False))
@click.option(
    "--lockfile",
    "lockfile_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Lockfile to check (default: sources.lock.json next to the manifest)",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def check(ctx: click.Context, manifest: str, lockfile_path: str | None, as_json: bool):
    """Check whether a manifest's sources drifted from its lockfile.

    Exits with status 1 when a re-lock is required.
    """
    registry = _load_registry(ctx, manifest)
    path = Path(lockfile_path) if lockfile_path else _default_lockfile(manifest)

    try:
        lockfile = SourceLockfile.load(path, registry.plugin_index)
    except USER_ERRORS as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    result = check_lockfile(registry, lockfile)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif result.changed:
        console.print("[yellow]Sources changed, re-lock required[/yellow]")
        for source in result.added:
            console.print(f"  [green]+[/green] {source}")
        for source in result.removed:
            console.print(f"  [red]-[/red] {source}")
    else:
        console.print("[green]✓ Lockfile up to date[/green]")

    if result.changed:
        sys.exit(1)


if __name__ == "__main__":
    cli()
