"""Exam bank commands (the ``tests`` group)."""

from typing import Optional

import click
from rich.table import Table

from toeic_admin.cli_commands.context import console, get_app, handle_errors
from toeic_admin.core.messages import notify
from toeic_admin.core.models import Difficulty, TestInput, TestStatus, TestType

TYPE_CHOICES = click.Choice([t.value for t in TestType], case_sensitive=False)
DIFFICULTY_CHOICES = click.Choice([d.value for d in Difficulty], case_sensitive=False)
STATUS_CHOICES = click.Choice([s.value for s in TestStatus], case_sensitive=False)


def _test_input(**values) -> TestInput:
    fields = {
        k: (v.upper() if isinstance(v, str) and k != "title" else v) for k, v in values.items()
    }
    return TestInput(**{k: v for k, v in fields.items() if v is not None})


@click.group(name="tests")
def tests_group():
    """Manage exams in the test bank."""
    pass


@tests_group.command(name="list")
@click.option("--page", default=1, show_default=True, help="Page number")
@click.option("--limit", default=10, show_default=True, help="Exams per page")
@click.option(
    "--difficulty",
    type=click.Choice(["ALL"] + [d.value for d in Difficulty], case_sensitive=False),
    default="ALL",
)
@click.option(
    "--status",
    type=click.Choice(["ALL"] + [s.value for s in TestStatus], case_sensitive=False),
    default="ALL",
)
@click.option("--search", help="Search exam titles")
@click.pass_context
@handle_errors
def list_tests(ctx, page: int, limit: int, difficulty: str, status: str, search: Optional[str]):
    """List exams with counters."""
    app = get_app(ctx)
    result, stats = app.exams.list_tests(
        page=page, limit=limit, difficulty=difficulty, status=status, search=search
    )

    console.print(
        f"Total: [bold]{stats.total}[/bold]  Locked: {stats.locked}  Unlocked: {stats.unlocked}"
    )
    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Title")
    table.add_column("Type")
    table.add_column("Difficulty")
    table.add_column("Status")
    table.add_column("Minutes", justify="right")
    table.add_column("Questions", justify="right")
    table.add_column("ID", style="dim")
    for test in result.items:
        status_style = "red" if test.status == TestStatus.LOCKED.value else "green"
        table.add_row(
            test.title,
            test.test_type,
            test.difficulty,
            f"[{status_style}]{test.status}[/{status_style}]",
            str(test.duration or "-"),
            str(test.total_questions or "-"),
            test.id,
        )
    console.print(table)
    pages = result.pagination.total_pages
    if pages:
        console.print(f"Page {result.pagination.page}/{pages}")


@tests_group.command(name="show")
@click.argument("test_id")
@click.pass_context
@handle_errors
def show_test(ctx, test_id: str):
    """Show one exam and its parts."""
    app = get_app(ctx)
    test = app.exams.get_test(test_id)
    console.print(f"[bold]{test.title}[/bold] ({test.test_type}, {test.difficulty}, {test.status})")
    console.print(f"  Duration: {test.duration} min  Questions: {test.total_questions}")
    for part in app.parts.list_parts(test_id):
        console.print(
            f"  Part {part.part_number}: {part.completed_questions}/{part.total_questions} "
            f"({part.progress_percent}%) {part.status}"
        )


@tests_group.command(name="create")
@click.option("--title", required=True, help="Exam title")
@click.option("--type", "test_type", type=TYPE_CHOICES, help="LISTENING or READING")
@click.option("--difficulty", type=DIFFICULTY_CHOICES)
@click.option("--status", type=STATUS_CHOICES)
@click.option("--duration", type=int, help="Minutes")
@click.option("--total-questions", type=int)
@click.pass_context
@handle_errors
def create_test(ctx, title, test_type, difficulty, status, duration, total_questions):
    """Create an exam (defaults: LISTENING, MEDIUM, LOCKED, 120 min, 100 questions)."""
    app = get_app(ctx)
    values = _test_input(
        title=title,
        test_type=test_type,
        difficulty=difficulty,
        status=status,
        duration=duration,
        total_questions=total_questions,
    )
    test = app.exams.create_test(values)
    console.print(f"[green]{notify('tests.created')}[/green]")
    if test:
        console.print(f"  ID: {test.id}")


@tests_group.command(name="update")
@click.argument("test_id")
@click.option("--title")
@click.option("--type", "test_type", type=TYPE_CHOICES)
@click.option("--difficulty", type=DIFFICULTY_CHOICES)
@click.option("--status", type=STATUS_CHOICES)
@click.option("--duration", type=int)
@click.option("--total-questions", type=int)
@click.pass_context
@handle_errors
def update_test(ctx, test_id, title, test_type, difficulty, status, duration, total_questions):
    """Edit an exam; only the given fields change."""
    app = get_app(ctx)
    values = _test_input(
        title=title,
        test_type=test_type,
        difficulty=difficulty,
        status=status,
        duration=duration,
        total_questions=total_questions,
    )
    app.exams.update_test(test_id, values)
    console.print(f"[green]{notify('tests.updated')}[/green]")


@tests_group.command(name="delete")
@click.argument("test_id")
@click.confirmation_option(prompt="Delete this exam?")
@click.pass_context
@handle_errors
def delete_test(ctx, test_id: str):
    """Delete an exam."""
    app = get_app(ctx)
    app.exams.delete_test(test_id)
    console.print(f"[green]{notify('tests.deleted')}[/green]")
