"""
"Doctor" command: configuration and connectivity diagnostics.

Runs a series of checks and prints a concise report:
 - Config summary and required keys
 - Backend reachability and whether the stored token is accepted
 - Local session state
 - Circuit breaker state
"""

from __future__ import annotations

import sys

import click

from toeic_admin.cli_commands.context import get_app
from toeic_admin.core.config import configuration_summary, validate_required_settings
from toeic_admin.utils.reliability import HealthChecker, get_circuit_breaker_status


@click.command()
@click.pass_context
def doctor(ctx):
    """Run diagnostics and print a summary report."""
    click.echo("TOEIC Admin Doctor")
    click.echo("=" * 40)

    for key, value in configuration_summary().items():
        click.echo(f"  {key}: {value}")

    missing = validate_required_settings("api")
    if missing:
        click.echo("\nConfiguration problems:")
        for item in missing:
            click.echo(f"  ✗ {item}")
        sys.exit(1)
    else:
        click.echo("\n✓ Required settings present")

    app = get_app(ctx, require_session=False)

    # Local session
    session = app.store.load()
    if session is None:
        click.echo("- Not logged in")
    elif app.store.is_idle(session):
        click.echo(f"- Session for {session.user.email} is idle and will be cleared on next use")
    else:
        click.echo(f"✓ Session: {session.user.email} ({session.user.role})")

    # Backend health
    checker = HealthChecker()
    checker.register_check("backend", app.api.health_check)
    result = checker.check_all()["backend"]
    if result["status"] == "healthy":
        details = result["details"]
        auth = "token accepted" if details.get("authenticated") else "not authenticated"
        click.echo(f"✓ Backend reachable ({result['response_time_ms']:.0f} ms, {auth})")
    else:
        click.echo(f"✗ Backend unreachable: {result.get('error', 'unknown')}")

    breakers = get_circuit_breaker_status()
    if breakers:
        click.echo("\nCircuit breakers:")
        for name, status in breakers.items():
            click.echo(f"  {name}: {status['state']} (failures: {status['failure_count']})")

    click.echo("\nDone.")
