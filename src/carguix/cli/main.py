"""
carguix CLI - Main entry point.

This module registers all CLI commands. Each command is implemented
in its own module under cli/commands/.
"""

import click

from .commands import cache, generate, index
from .utils import configure_logging


@click.group()
@click.version_option(package_name="carguix")
@click.option("--verbose", is_flag=True, help="Show debug logs")
@click.option("-q", "--quiet", is_flag=True, help="Only show errors")
def main(verbose: bool, quiet: bool):
    """carguix: Guix package definitions for Rust crates.

    Resolves the complete dependency graph of a crate (from crates.io,
    a local checkout or a Cargo.lock) and emits one Guix package per
    distinct crate version.

    \b
    Quick Start:
      carguix index update
      carguix generate serde --version 1.0.104
      carguix generate -m ./my-crate -o crates.scm
    """
    configure_logging(verbose, quiet)


# Register commands
main.add_command(generate.generate)
main.add_command(index.index)
main.add_command(cache.cache)

if __name__ == "__main__":
    main()
