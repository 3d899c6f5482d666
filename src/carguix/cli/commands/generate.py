"""
Generate Command.

Resolves the dependency graph of a crate and prints Guix package
definitions for every crate in it.

Usage:
    carguix generate serde                      # latest serde from crates.io
    carguix generate serde --version 1.0.104    # exact version
    carguix generate -m ./my-crate              # local crate (uses its Cargo.lock)
    carguix generate serde --lock-path Cargo.lock
    carguix generate --snapshot graph.json      # replay a saved graph
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from ...config import (
    DEFAULT_CACHE_DB,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_HASH_TIMEOUT,
    DEFAULT_INDEX_DIR,
    DEFAULT_RETRIES,
    Settings,
)
from ...core.context import ResolutionContext
from ...core.graph import DependencyGraphBuilder
from ...core.index import CrateIndex, LocalCrateIndex, SparseCrateIndex
from ...core.sources import CrateRef, LockSource, PathSource, RegistrySource, SimpleSource
from ...core.types import PackageDefinition
from ...errors import CarguixError, SnapshotError
from ...guix import default_module_name, render_json, render_module
from ..utils import echo_info, echo_success, exit_with_error

console = Console(stderr=True)


def select_root(
    context: ResolutionContext,
    crate_name: Optional[str],
    version: Optional[str],
    manifest_path: Optional[Path],
    lock_path: Optional[Path],
    snapshot: Optional[Path],
) -> CrateRef:
    """
    Build the root crate reference from the command line inputs.

    Raises:
        click.UsageError: If the inputs do not name exactly one root.
        CarguixError: If the root cannot be resolved.
    """
    if sum(option is not None for option in (manifest_path, lock_path, snapshot)) > 1:
        raise click.UsageError("--manifest-path, --lock-path and --snapshot are mutually exclusive")

    if manifest_path is not None:
        return CrateRef.of(PathSource.new(context, manifest_path))

    if lock_path is not None:
        if crate_name is None:
            raise click.UsageError("--lock-path requires a CRATE argument")
        return CrateRef.of(LockSource.from_path(crate_name, version, lock_path))

    if snapshot is not None:
        try:
            data = json.loads(snapshot.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(f"cannot read {snapshot}") from e
        return CrateRef.of(SimpleSource.from_dict(data))

    if crate_name is None:
        raise click.UsageError("specify a CRATE, --manifest-path, --lock-path or --snapshot")
    return CrateRef.of(RegistrySource.new(context, crate_name, version))


def _needs_index(crate_name: Optional[str], manifest_path, lock_path, snapshot) -> bool:
    """Lock and snapshot roots are fully pinned and never consult the index."""
    if lock_path is not None or snapshot is not None:
        return False
    return manifest_path is not None or crate_name is not None


def _render(
    output_format: str,
    root: CrateRef,
    graph,
    module_name: Optional[str],
) -> str:
    packages = list(graph.values())
    if output_format == "json":
        return render_json(packages)
    if output_format == "snapshot":
        snapshot = SimpleSource.from_graph(root.identity(), graph)
        return json.dumps(snapshot.to_dict(), indent=2) + "\n"
    return render_module(module_name or default_module_name(root.crate_name), packages)


@click.command()
@click.argument("crate_name", metavar="CRATE", required=False)
@click.option("-v", "--version", "crate_version", help="Exact crate version (default: latest)")
@click.option(
    "-m",
    "--manifest-path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to crate directory (containing Cargo.toml)",
)
@click.option(
    "--lock-path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Resolve CRATE from this Cargo.lock",
)
@click.option(
    "--snapshot",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Replay a graph saved with --format snapshot",
)
@click.option(
    "--index",
    "index_kind",
    type=click.Choice(["local", "sparse"]),
    default="local",
    show_default=True,
    help="Where to read published crate versions from",
)
@click.option(
    "--index-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_INDEX_DIR,
    help="Local crates.io index checkout",
)
@click.option("-u", "--update", is_flag=True, help="Update the local crates.io index first")
@click.option(
    "--cache-db",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CACHE_DB,
    help="Hash cache database",
)
@click.option("-j", "--jobs", type=click.IntRange(min=1), default=1, help="Crates processed in parallel")
@click.option("--download-timeout", type=click.FloatRange(min=0, min_open=True), default=DEFAULT_DOWNLOAD_TIMEOUT)
@click.option("--hash-timeout", type=click.FloatRange(min=0, min_open=True), default=DEFAULT_HASH_TIMEOUT)
@click.option("--retries", type=click.IntRange(min=0), default=DEFAULT_RETRIES)
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["scheme", "json", "snapshot"]),
    default="scheme",
    show_default=True,
)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Write to file instead of stdout")
@click.option("--module-name", help="Guix module name, e.g. 'gnu packages crates-io'")
def generate(
    crate_name: Optional[str],
    crate_version: Optional[str],
    manifest_path: Optional[Path],
    lock_path: Optional[Path],
    snapshot: Optional[Path],
    index_kind: str,
    index_dir: Path,
    update: bool,
    cache_db: Path,
    jobs: int,
    download_timeout: float,
    hash_timeout: float,
    retries: int,
    output_format: str,
    output: Optional[Path],
    module_name: Optional[str],
):
    """
    Generate Guix package definitions for a crate and its dependencies.

    \b
    Examples:
        carguix generate serde
        carguix generate -m . -o crates.scm
        carguix generate --snapshot graph.json --format json
    """
    settings = Settings(
        cache_db=cache_db,
        index_dir=index_dir,
        download_timeout=download_timeout,
        hash_timeout=hash_timeout,
        retries=retries,
        workers=jobs,
    )

    try:
        index: CrateIndex
        if index_kind == "sparse":
            index = SparseCrateIndex(settings.sparse_index_url, timeout=settings.download_timeout)
        else:
            index = LocalCrateIndex(settings.index_dir)
            if update or (
                not index.exists() and _needs_index(crate_name, manifest_path, lock_path, snapshot)
            ):
                with console.status("[bold]🌐 Fetching crates.io index...[/bold]"):
                    index.update()

        with ResolutionContext.create(settings, index=index) as context:
            root = select_root(context, crate_name, crate_version, manifest_path, lock_path, snapshot)

            with console.status(f"[bold]📦 Resolving {root.crate_name}...[/bold]") as status:

                def report(definition: PackageDefinition) -> None:
                    status.update(f"[bold]📦 Packaged {definition.package_name}[/bold]")

                builder = DependencyGraphBuilder(context, workers=settings.workers, on_package=report)
                graph = builder.build(root)
            hashed = context.hash_cache.computed

    except CarguixError as e:
        exit_with_error(e)

    content = _render(output_format, root, graph, module_name)
    if output is None:
        click.echo(content, nl=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    echo_success(f"Wrote {len(graph)} packages to {output}")
    echo_info(f"{hashed} hashed, {len(graph) - hashed} from cache")
