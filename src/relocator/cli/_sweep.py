"""The sweep command."""

from __future__ import annotations

import click

from ..staging import sweep as sweep_directory
from ._helpers import main, _dry_run_option, _status


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@_dry_run_option
@click.pass_context
def sweep(ctx, directory, dry_run):
    """Clean up staging and backup entries left in DIRECTORY by a crash.

    Staging copies are deleted.  A backup whose destination is missing is
    restored; other backups are deleted.  Do not run this while a move
    into DIRECTORY is in progress.
    """
    report = sweep_directory(directory, dry_run=dry_run)
    for path in report.removed:
        click.echo(f"- {path}")
    for path in report.restored:
        click.echo(f"restored {path}")
    for err in report.errors:
        click.echo(f"Error: {err.path}: {err.error}", err=True)
    if report.clean:
        _status(ctx, "Nothing to clean up")
    if report.errors:
        ctx.exit(1)
