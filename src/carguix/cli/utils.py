"""
CLI Utilities - Shared helper functions for command line operations.

Formatted printing, logging setup, and the error reporter that prints
a failure together with its full causal chain.
"""

import logging
import sys
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape

from ..errors import iter_causes

logger = logging.getLogger(__name__)

err_console = Console(stderr=True, soft_wrap=True)


def echo_success(message: str) -> None:
    """
    Print a success message with a green checkmark.

    Args:
        message (str): The message to display.
    """
    click.echo(click.style(f"✅ {message}", fg="green"), err=True)


def echo_error(message: str) -> None:
    """
    Print an error message with a red cross.

    Args:
        message (str): The error message to display.
    """
    click.echo(click.style(f"❌ {message}", fg="red"), err=True)


def echo_info(message: str) -> None:
    click.echo(click.style(f"   {message}", dim=True), err=True)


def configure_logging(verbose: bool, quiet: bool) -> None:
    """Route log records to stderr at the level picked by the global flags."""
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="[%X]",
        stream=sys.stderr,
    )


def exit_with_error(error: BaseException) -> NoReturn:
    """
    Report a failure and every cause behind it, then exit with status 1.

    Args:
        error: The outermost failure.
    """
    err_console.print(f"[bold red]error:[/bold red] {escape(str(error))}")
    for cause in iter_causes(error):
        err_console.print(f"[red]caused by:[/red] {escape(str(cause))}")
    sys.exit(1)
