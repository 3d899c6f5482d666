"""
Cache CLI Command.

Inspect and manage the content-hash cache.

Usage:
    carguix cache stats
    carguix cache list
    carguix cache invalidate <locator>
    carguix cache clear [--yes]
"""

import tempfile
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ...config import DEFAULT_CACHE_DB
from ...core.hash_cache import ContentHashCache
from ...errors import HashCacheError
from ..utils import echo_error, echo_success, exit_with_error

console = Console()


def _open(cache_db: Path) -> ContentHashCache:
    # Management commands never download, the scratch dir is unused
    return ContentHashCache(cache_db, Path(tempfile.gettempdir()))


@click.group()
@click.option(
    "--cache-db",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CACHE_DB,
    help="Hash cache database",
)
@click.pass_context
def cache(ctx: click.Context, cache_db: Path):
    """Manage the content-hash cache."""
    ctx.obj = cache_db


@cache.command("stats")
@click.pass_obj
def cache_stats(cache_db: Path):
    """Show cache statistics."""
    try:
        stats = _open(cache_db).stats()
    except HashCacheError as e:
        exit_with_error(e)

    click.echo("📊 Cache Statistics:\n")
    click.echo(f"   Database: {cache_db}")
    click.echo(f"   Total entries: {stats.total_entries}")
    if stats.oldest_entry:
        click.echo(f"   Oldest entry: {stats.oldest_entry.strftime('%Y-%m-%d %H:%M')}")
    if stats.newest_entry:
        click.echo(f"   Newest entry: {stats.newest_entry.strftime('%Y-%m-%d %H:%M')}")


@cache.command("list")
@click.pass_obj
def cache_list(cache_db: Path):
    """List every cached digest."""
    try:
        entries = _open(cache_db).entries()
    except HashCacheError as e:
        exit_with_error(e)

    if not entries:
        click.echo("📦 Cache is empty.")
        return

    table = Table(title=f"Cached hashes ({len(entries)})")
    table.add_column("Locator", style="cyan", overflow="fold")
    table.add_column("Digest", style="green")
    table.add_column("Created", style="dim")
    for entry in entries:
        table.add_row(entry.locator, entry.digest, entry.created_at.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


@cache.command("invalidate")
@click.argument("locator")
@click.pass_obj
def cache_invalidate(cache_db: Path, locator: str):
    """Remove the digest of one locator."""
    try:
        removed = _open(cache_db).invalidate(locator)
    except HashCacheError as e:
        exit_with_error(e)

    if removed:
        echo_success(f"Invalidated: {locator}")
    else:
        echo_error(f"Not cached: {locator}")


@cache.command("clear")
@click.confirmation_option(prompt="Remove every cached hash?")
@click.pass_obj
def cache_clear(cache_db: Path):
    """Remove every cached digest."""
    try:
        removed = _open(cache_db).clear()
    except HashCacheError as e:
        exit_with_error(e)
    echo_success(f"Removed {removed} cached hash(es)")
