from __future__ import annotations

import pathlib

import click

from shaderedit.cli.decorators import with_error_handling
from shaderedit.config import load_config
from shaderedit.config.models import CONFIG_KEY_DESCRIPTIONS


@click.command("config")
@click.argument(
    "project_dir",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=pathlib.Path),
)
@with_error_handling
def config_cmd(project_dir: pathlib.Path | None) -> None:
    """Show effective configuration (global merged with PROJECT_DIR's)."""
    config = load_config(project_dir).model_dump()
    for key, description in CONFIG_KEY_DESCRIPTIONS.items():
        section, name = key.split(".", 1)
        value = config[section][name]
        click.echo(f"{key} = {_format_value(value)}  # {description}")


def _format_value(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
