from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext


@click.group("worker")
def worker_cli():
    """Background job worker commands."""
    pass


@worker_cli.command("run")
@with_appcontext
def run_worker():
    """Run the job worker. Use in production as separate container or systemd service."""
    # Import lazily to avoid importing APScheduler at Flask startup when not needed
    from .scheduler import run

    current_app.logger.info("Starting job worker via CLI")
    run(current_app._get_current_object())


@click.group("flags")
def flags_cli():
    """Feature flag commands."""
    pass


@flags_cli.command("list")
@with_appcontext
def list_flags():
    from .services import get_services

    for name, enabled in get_services().flags.all().items():
        click.echo(f"{name}\t{'on' if enabled else 'off'}")


@flags_cli.command("enable")
@click.argument("name")
@with_appcontext
def enable_flag(name: str):
    from .services import get_services

    get_services().flags.enable(name)
    click.echo(f"{name} enabled")


@flags_cli.command("disable")
@click.argument("name")
@with_appcontext
def disable_flag(name: str):
    from .services import get_services

    get_services().flags.disable(name)
    click.echo(f"{name} disabled")
