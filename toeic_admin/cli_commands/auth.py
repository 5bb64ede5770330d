"""Login, logout and whoami commands."""

import sys

import click

from toeic_admin.cli_commands.context import console, get_app, handle_errors
from toeic_admin.core.exceptions import ApiError, AuthenticationError, PermissionDeniedError
from toeic_admin.core.messages import notify


@click.command()
@click.option("--email", prompt=True, help="Admin account email")
@click.option("--password", prompt=True, hide_input=True, help="Admin account password")
@click.pass_context
@handle_errors
def login(ctx, email: str, password: str):
    """Log in with an ADMIN account and remember the session."""
    app = get_app(ctx, require_session=False)
    try:
        user = app.auth.login(email.strip(), password)
    except (AuthenticationError, PermissionDeniedError) as e:
        console.print(f"[red]{e.message or notify('login.failed')}[/red]")
        sys.exit(1)
    except ApiError as e:
        if e.status_code is not None:
            raise
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)
    console.print(f"[green]{notify('login.success', name=user.name or user.email)}[/green]")


@click.command()
@click.pass_context
@handle_errors
def logout(ctx):
    """Forget the stored session."""
    get_app(ctx, require_session=False).auth.logout()
    console.print(notify("logout.success"))


@click.command()
@click.option("--refresh", is_flag=True, help="Reload the profile from the server")
@click.pass_context
@handle_errors
def whoami(ctx, refresh: bool):
    """Show the logged-in admin."""
    app = get_app(ctx)
    user = app.auth.refresh_current_user() if refresh else app.auth.current_user()
    console.print(f"[bold]{user.name}[/bold] <{user.email}>")
    console.print(f"  Role: {user.role}")
    if user.avatar_url:
        console.print(f"  Avatar: {user.avatar_url}")
