"""Upload commands."""

from pathlib import Path

import click

from toeic_admin.cli_commands.context import console, get_app, handle_errors
from toeic_admin.core.messages import notify

FILE_PATH = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.group(name="media")
def media_group():
    """Upload images, audio and the admin avatar."""
    pass


@media_group.command(name="upload-image")
@click.argument("path", type=FILE_PATH)
@click.pass_context
@handle_errors
def upload_image(ctx, path: Path):
    app = get_app(ctx)
    url = app.media.upload_image(path)
    console.print(notify("media.uploaded", url=url))


@media_group.command(name="upload-audio")
@click.argument("path", type=FILE_PATH)
@click.pass_context
@handle_errors
def upload_audio(ctx, path: Path):
    app = get_app(ctx)
    url = app.media.upload_audio(path)
    console.print(notify("media.uploaded", url=url))


@media_group.command(name="avatar")
@click.argument("path", type=FILE_PATH)
@click.pass_context
@handle_errors
def avatar(ctx, path: Path):
    """Replace the logged-in admin's avatar."""
    app = get_app(ctx)
    user = app.media.upload_avatar(path)
    console.print(f"[green]{notify('media.avatar_updated')}[/green]")
    if user.avatar_url:
        console.print(f"  {user.avatar_url}")
