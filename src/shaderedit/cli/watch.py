from __future__ import annotations

import json
import pathlib
import time

import click

from shaderedit.cli.decorators import with_error_handling
from shaderedit.config import load_config
from shaderedit.exceptions import ShaderEditError
from shaderedit.project import ShaderProject
from shaderedit.tracking.channel import NotificationChannel
from shaderedit.tracking.index import PassFileIndex
from shaderedit.tracking.watch_set import build_watch_set
from shaderedit.tracking.worker import WatchWorker

_PROJECT_ARG = click.Path(exists=True, dir_okay=False, path_type=pathlib.Path)


@click.command("files")
@click.argument("project_file", type=_PROJECT_ARG)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@with_error_handling
def files(project_file: pathlib.Path, as_json: bool) -> None:
    """Show the shader files a project tracks and the directories watched."""
    project = ShaderProject.load(project_file)
    index = PassFileIndex.build(project.get_pass_list(), project.resolve_project_relative_path)
    watch_set = build_watch_set(index.paths())

    if as_json:
        payload = {
            "passes": {
                name: [
                    {"stage": str(watched.stage), "path": str(watched.path)}
                    for watched in index.files_for(name)
                ]
                for name in index.pass_names()
            },
            "directories": [str(path) for path in watch_set.paths()],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for name in index.pass_names():
        click.echo(name)
        for watched in index.files_for(name):
            click.echo(f"  {watched.stage.label}  {watched.path}")
    click.echo("Watched directories:")
    for directory in watch_set:
        click.echo(f"  {directory.path}  ({len(directory.file_indices)} file(s))")


@click.command("watch")
@click.argument("project_file", type=_PROJECT_ARG)
@click.option(
    "--interval",
    default=100,
    show_default=True,
    type=click.IntRange(min=1),
    help="How often to report changes (ms)",
)
@click.option("--force-polling", is_flag=True, help="Poll instead of native notifications")
@with_error_handling
def watch(project_file: pathlib.Path, interval: int, force_polling: bool) -> None:
    """Report passes whose shader files change on disk until interrupted."""
    project = ShaderProject.load(project_file)
    tracking = load_config(project.directory).tracking
    if not tracking.enabled:
        raise click.ClickException(
            "File tracking is disabled (tracking.enabled is false); "
            + "enable it in the config to use watch"
        )
    if force_polling:
        tracking = tracking.model_copy(update={"force_polling": True})

    channel = NotificationChannel(tracking.max_pending)
    worker = WatchWorker(project, channel, tracking)
    worker.start()
    click.echo(f"Watching {project_file} (Ctrl+C to stop)", err=True)
    try:
        while worker.is_running:
            time.sleep(interval / 1000)
            for name in dict.fromkeys(channel.drain()):
                click.echo(name)
    except KeyboardInterrupt:
        pass
    finally:
        worker.stop()

    error = worker.error
    if isinstance(error, ShaderEditError):
        raise error
    if error is not None:
        raise click.ClickException(f"File tracker failed: {error!r}")
