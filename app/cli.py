"""Operator commands. Run from cron, e.g. ``0 2 * * * juconnect cleanup run``."""

import json
import sys

import click

from app import models  # noqa: F401
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.retention import ConfigurationError, preview_retention, recent_cleanup_runs, run_retention_cleanup


@click.group()
def cli() -> None:
    configure_logging()


@cli.group()
def cleanup() -> None:
    """Group chat retention sweep."""


@cleanup.command("run")
@click.option("--strict", is_flag=True, help="Exit non-zero when the run reports an error.")
def run_command(strict: bool) -> None:
    db = SessionLocal()
    try:
        result = run_retention_cleanup(db)
    finally:
        db.close()
    click.echo(json.dumps({**result.as_dict(), "status": result.status}))
    if strict and result.error:
        sys.exit(1)


@cleanup.command("runs")
@click.option("--limit", default=10, show_default=True, type=click.IntRange(1, 200))
def runs_command(limit: int) -> None:
    db = SessionLocal()
    try:
        for run in recent_cleanup_runs(db, limit=limit):
            click.echo(
                f"{run.run_at.isoformat()} {run.status:<9} messages={run.messages_deleted} "
                f"attachments={run.attachments_deleted} error={run.error or '-'}"
            )
    finally:
        db.close()


@cleanup.command("preview")
def preview_command() -> None:
    db = SessionLocal()
    try:
        preview = preview_retention(db)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        db.close()
    click.echo(f"cutoff: {preview.cutoff_at.isoformat()}")
    click.echo(f"messages to delete: {preview.will_delete_messages} (files: {preview.will_delete_files})")
    expiring = sum(1 for item in preview.items if item.status == "expiring_soon")
    click.echo(f"expiring before {preview.horizon_at.date().isoformat()}: {expiring}")


if __name__ == "__main__":
    cli()
