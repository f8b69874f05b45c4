from __future__ import annotations

import logging
from typing import TypedDict

import click

from shaderedit.cli import config as config_cmd
from shaderedit.cli import watch as watch_cmd


class CliContext(TypedDict):
    """Context object for CLI commands."""

    verbose: bool
    quiet: bool


def _setup_logging(verbose: bool, quiet: bool) -> None:
    """Configure logging for CLI output."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s", force=True)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool) -> None:
    """Shader project editor tools.

    Inspect which shader files a project watches and follow external edits
    to them as they happen.
    """
    if verbose and quiet:
        raise click.UsageError("--verbose and --quiet are mutually exclusive")
    ctx.obj = CliContext(verbose=verbose, quiet=quiet)
    _setup_logging(verbose, quiet)


cli.add_command(watch_cmd.files)
cli.add_command(watch_cmd.watch)
cli.add_command(config_cmd.config_cmd)


def main() -> None:
    cli()
