"""Part management commands."""

import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.table import Table

from toeic_admin.cli_commands.context import (
    console,
    get_app,
    handle_errors,
    print_batch_summary,
)
from toeic_admin.core.catalog import PART_CONFIG, display_part_name
from toeic_admin.core.exceptions import ValidationError
from toeic_admin.core.messages import notify
from toeic_admin.core.models import PartInput, PartStatus

STATUS_CHOICES = click.Choice([s.value for s in PartStatus], case_sensitive=False)


def _read_instructions(text: Optional[str], file_path: Optional[str]) -> Optional[str]:
    if file_path:
        return Path(file_path).read_text(encoding="utf-8")
    return text


@click.group(name="parts")
def parts_group():
    """Manage the parts of an exam."""
    pass


@parts_group.command(name="list")
@click.argument("test_id")
@click.pass_context
@handle_errors
def list_parts(ctx, test_id: str):
    """List the parts of an exam with their progress."""
    app = get_app(ctx)
    parts = app.parts.list_parts(test_id)

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Part", justify="right", style="cyan")
    table.add_column("Name")
    table.add_column("Progress", justify="right")
    table.add_column("Minutes", justify="right")
    table.add_column("Status")
    table.add_column("Audio", justify="center")
    table.add_column("ID", style="dim")
    for part in parts:
        progress_style = "green" if part.is_complete else "yellow"
        table.add_row(
            str(part.part_number),
            display_part_name(part.part_name),
            f"[{progress_style}]{part.completed_questions}/{part.total_questions}"
            f" ({part.progress_percent}%)[/{progress_style}]",
            str(part.time_limit or "-"),
            part.status,
            "✓" if part.audio_url else "",
            part.id,
        )
    console.print(table)


@parts_group.command(name="show")
@click.argument("part_id")
@click.pass_context
@handle_errors
def show_part(ctx, part_id: str):
    """Show a part's settings."""
    app = get_app(ctx)
    part = app.parts.get_part(part_id)
    console.print(f"[bold]Part {part.part_number}: {display_part_name(part.part_name)}[/bold]")
    console.print(f"  Status: {part.status}")
    console.print(f"  Questions: {part.completed_questions}/{part.total_questions}")
    console.print(f"  Time limit: {part.time_limit} min")
    if part.audio_url:
        console.print(f"  Audio: {part.audio_url}")
    if part.instructions:
        console.print(f"  Instructions: {part.instructions}")


@parts_group.command(name="create")
@click.argument("test_id")
@click.option(
    "--number",
    "part_number",
    type=click.Choice([str(n) for n in PART_CONFIG]),
    required=True,
    help="TOEIC part number",
)
@click.option("--instructions", help="Instructions shown to students (HTML allowed)")
@click.option("--instructions-file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", help="Override the catalog name")
@click.option("--total-questions", type=int, help="Override the catalog question count")
@click.option("--time-limit", type=int, help="Override the catalog time limit (minutes)")
@click.option("--status", type=STATUS_CHOICES, help="Defaults to INACTIVE")
@click.pass_context
@handle_errors
def create_part(
    ctx,
    test_id,
    part_number,
    instructions,
    instructions_file,
    name,
    total_questions,
    time_limit,
    status,
):
    """Create a part pre-filled from the TOEIC catalog."""
    app = get_app(ctx)
    overrides = {
        "part_name": name,
        "total_questions": total_questions,
        "time_limit": time_limit,
        "status": status.upper() if status else None,
    }
    part = app.parts.create_part(
        test_id,
        int(part_number),
        _read_instructions(instructions, instructions_file),
        **{k: v for k, v in overrides.items() if v is not None},
    )
    console.print(f"[green]{notify('parts.created')}[/green]")
    if part:
        console.print(f"  ID: {part.id}")


@parts_group.command(name="update")
@click.argument("part_id")
@click.option("--instructions", help="New instructions (defaults to the current ones)")
@click.option("--instructions-file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name")
@click.option("--total-questions", type=int)
@click.option("--time-limit", type=int)
@click.option("--order-index", type=int)
@click.option("--status", type=STATUS_CHOICES)
@click.pass_context
@handle_errors
def update_part(
    ctx,
    part_id,
    instructions,
    instructions_file,
    name,
    total_questions,
    time_limit,
    order_index,
    status,
):
    """Edit a part."""
    app = get_app(ctx)
    instructions = _read_instructions(instructions, instructions_file)
    if instructions is None:
        instructions = app.parts.get_part(part_id).instructions

    fields = {
        "part_name": name,
        "total_questions": total_questions,
        "time_limit": time_limit,
        "order_index": order_index,
        "status": status.upper() if status else None,
    }
    values = PartInput(**{k: v for k, v in fields.items() if v is not None})
    app.parts.update_part(part_id, values, instructions)
    console.print(f"[green]{notify('parts.updated')}[/green]")


def _set_status(ctx, part_ids: Tuple[str, ...], status: PartStatus, message_key: str):
    app = get_app(ctx)
    result = app.parts.set_status_bulk(part_ids, status)
    if result.ok:
        console.print(f"[green]{notify(message_key, count=result.succeeded)}[/green]")
        return
    message = notify("parts.bulk_failed", failed=result.failed, total=result.total)
    console.print(f"[red]{message}[/red]")
    print_batch_summary(result)
    sys.exit(1)


@parts_group.command(name="activate")
@click.argument("part_ids", nargs=-1)
@click.pass_context
@handle_errors
def activate(ctx, part_ids: Tuple[str, ...]):
    """Set parts ACTIVE."""
    _set_status(ctx, part_ids, PartStatus.ACTIVE, "parts.activated")


@parts_group.command(name="deactivate")
@click.argument("part_ids", nargs=-1)
@click.pass_context
@handle_errors
def deactivate(ctx, part_ids: Tuple[str, ...]):
    """Set parts INACTIVE."""
    _set_status(ctx, part_ids, PartStatus.INACTIVE, "parts.deactivated")


@parts_group.command(name="delete")
@click.argument("part_id")
@click.confirmation_option(prompt="Delete this part?")
@click.pass_context
@handle_errors
def delete_part(ctx, part_id: str):
    """Delete a part that has no questions."""
    app = get_app(ctx)
    app.parts.delete_part(part_id)
    console.print(f"[green]{notify('parts.deleted')}[/green]")


@parts_group.command(name="set-audio")
@click.argument("part_id")
@click.option("--file", "audio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--url", "audio_url", help="Use an already uploaded audio URL")
@click.pass_context
@handle_errors
def set_audio(ctx, part_id: str, audio_file: Optional[str], audio_url: Optional[str]):
    """Attach shared audio to a part (Parts 1 and 2 play one recording)."""
    app = get_app(ctx)
    if not audio_file and not audio_url:
        raise ValidationError("Give --file or --url")
    if audio_file:
        audio_url = app.media.upload_audio(audio_file)
    app.parts.set_part_audio(part_id, audio_url)
    console.print(f"[green]{notify('parts.audio_updated')}[/green] {audio_url}")
