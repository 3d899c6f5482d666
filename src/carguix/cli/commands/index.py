"""
Index CLI Command.

Manage the local checkout of the crates.io index.

Usage:
    carguix index update [--index-dir DIR]
"""

from pathlib import Path

import click
from rich.console import Console

from ...config import DEFAULT_INDEX_DIR
from ...core.index import LocalCrateIndex
from ...errors import IndexUpdateError
from ..utils import echo_success, exit_with_error

console = Console(stderr=True)


@click.group()
def index():
    """Manage the local crates.io index."""
    pass


@index.command("update")
@click.option(
    "--index-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_INDEX_DIR,
    help="Local crates.io index checkout",
)
def index_update(index_dir: Path):
    """Clone the index, or refresh an existing checkout."""
    crate_index = LocalCrateIndex(index_dir)
    action = "Updating" if crate_index.exists() else "Fetching"

    try:
        with console.status(f"[bold]🌐 {action} crates.io index...[/bold]"):
            crate_index.update()
    except IndexUpdateError as e:
        exit_with_error(e)

    echo_success(f"Index ready at {index_dir}")
