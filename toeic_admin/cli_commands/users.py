"""User account commands."""

from typing import Optional

import click
from rich.table import Table

from toeic_admin.cli_commands.context import console, get_app, handle_errors
from toeic_admin.core.messages import notify
from toeic_admin.core.models import Gender, Role, UserInput

ROLE_CHOICES = click.Choice([r.value for r in Role], case_sensitive=False)
GENDER_CHOICES = click.Choice([g.value for g in Gender], case_sensitive=False)


def _user_input(**values) -> UserInput:
    for key in ("role", "gender"):
        if values.get(key):
            values[key] = values[key].upper()
    return UserInput(**{k: v for k, v in values.items() if v is not None})


@click.group(name="users")
def users_group():
    """Manage user accounts."""
    pass


@users_group.command(name="list")
@click.option("--page", default=1, show_default=True)
@click.option("--limit", default=10, show_default=True)
@click.option(
    "--role",
    type=click.Choice(["ALL"] + [r.value for r in Role], case_sensitive=False),
    default="ALL",
)
@click.option("--search", help="Search by name or email")
@click.pass_context
@handle_errors
def list_users(ctx, page: int, limit: int, role: str, search: Optional[str]):
    """List accounts."""
    app = get_app(ctx)
    result = app.users.list_users(page=page, limit=limit, role=role, search=search)

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("Role")
    table.add_column("Phone")
    table.add_column("Progress", justify="right")
    table.add_column("ID", style="dim")
    for user in result.items:
        progress = f"{user.progress:.0f}%" if user.progress is not None else "-"
        table.add_row(
            user.name, user.email, user.role, user.phone_number or "", progress, user.id
        )
    console.print(table)
    console.print(
        f"Page {result.pagination.page}/{result.pagination.total_pages or 1}"
        f"  ({result.pagination.total} users)"
    )


@users_group.command(name="create")
@click.option("--email", required=True)
@click.option("--name", required=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=ROLE_CHOICES, help="Defaults to STUDENT")
@click.option("--phone", "phone_number")
@click.option("--gender", type=GENDER_CHOICES)
@click.pass_context
@handle_errors
def create_user(ctx, email, name, password, role, phone_number, gender):
    """Create an account."""
    app = get_app(ctx)
    values = _user_input(
        email=email,
        name=name,
        password=password,
        role=role,
        phone_number=phone_number,
        gender=gender,
    )
    user = app.users.create_user(values)
    console.print(f"[green]{notify('users.created')}[/green]")
    if user:
        console.print(f"  ID: {user.id}")


@users_group.command(name="update")
@click.argument("user_id")
@click.option("--email")
@click.option("--name")
@click.option("--role", type=ROLE_CHOICES)
@click.option("--phone", "phone_number")
@click.option("--gender", type=GENDER_CHOICES)
@click.option("--target-score", type=int)
@click.pass_context
@handle_errors
def update_user(ctx, user_id, email, name, role, phone_number, gender, target_score):
    """Edit an account; only the given fields change."""
    app = get_app(ctx)
    values = _user_input(
        email=email,
        name=name,
        role=role,
        phone_number=phone_number,
        gender=gender,
        target_score=target_score,
    )
    app.users.update_user(user_id, values)
    console.print(f"[green]{notify('users.updated')}[/green]")
