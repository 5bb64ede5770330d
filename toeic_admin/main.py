"""
Main application entry point for the TOEIC admin console.

Provides the CLI for managing the test bank over the backend REST API.
"""

import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from toeic_admin.cli_commands.auth import login, logout, whoami
from toeic_admin.cli_commands.context import get_app, handle_errors
from toeic_admin.cli_commands.doctor import doctor
from toeic_admin.cli_commands.exams import tests_group
from toeic_admin.cli_commands.media import media_group
from toeic_admin.cli_commands.parts import parts_group
from toeic_admin.cli_commands.questions import questions_group
from toeic_admin.cli_commands.users import users_group
from toeic_admin.core.config import configuration_summary, validate_required_settings
from toeic_admin.core.logging import set_correlation_id, setup_logging
from toeic_admin.utils.reliability import reset_circuit_breaker

console = Console()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--dry-run", is_flag=True, help="Log mutations instead of sending them")
@click.option("--correlation-id", help="Set correlation ID for request tracing")
@click.pass_context
def main(ctx, debug: bool, dry_run: bool, correlation_id: Optional[str]):
    """Admin console for the TOEIC practice platform.

    Manages exams, parts, questions, media and user accounts through the
    backend REST API.
    """
    # Keep anything the caller already put in the context object
    ctx.ensure_object(dict)

    setup_logging(debug=debug, rich_output=True)

    if correlation_id:
        set_correlation_id(correlation_id)

    ctx.obj["debug"] = debug
    ctx.obj["dry_run"] = dry_run
    ctx.obj["correlation_id"] = correlation_id


# Add commands and groups
main.add_command(login)
main.add_command(logout)
main.add_command(whoami)
main.add_command(doctor)
main.add_command(tests_group)
main.add_command(parts_group)
main.add_command(questions_group)
main.add_command(users_group)
main.add_command(media_group)


@main.command()
def config():
    """Display current configuration."""
    missing = validate_required_settings()
    if missing:
        console.print("[red]Configuration Issues:[/red]")
        for item in missing:
            console.print(f"  • {item}")
        console.print()
    else:
        console.print("[green]Configuration Valid[/green]")

    table = Table(title="TOEIC Admin Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    for key, value in configuration_summary().items():
        table.add_row(key, value)
    console.print(table)

    sys.exit(0 if not missing else 1)


@main.command()
@click.option("--questions", is_flag=True, help="Also total the questions of every exam")
@click.pass_context
@handle_errors
def stats(ctx, questions: bool):
    """Show dashboard counters."""
    app = get_app(ctx)
    result = app.dashboard.get_stats(include_questions=questions)

    table = Table(title="Dashboard")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Users", str(result.users))
    table.add_row("Exams", str(result.tests))
    table.add_row("Locked", str(result.locked_tests))
    table.add_row("Unlocked", str(result.unlocked_tests))
    if result.questions is not None:
        table.add_row("Questions", str(result.questions))
    console.print(table)


@main.command()
@click.argument("breaker_name", default="toeic_api")
def reset_breaker(breaker_name: str):
    """Reset a circuit breaker by name."""
    if reset_circuit_breaker(breaker_name):
        console.print(f"[green]Circuit breaker '{breaker_name}' reset[/green]")
        sys.exit(0)
    console.print(f"[red]Circuit breaker '{breaker_name}' not found[/red]")
    sys.exit(1)


if __name__ == "__main__":
    main()
