"""The mv and plan commands."""

from __future__ import annotations

import json

import click

from ..mover import Relocator
from ._helpers import (
    main,
    _dry_run_option,
    _echo_plan,
    _format_option,
    _outcome_dict,
    _request_options,
    _status,
)


@main.command()
@click.argument("source", type=click.Path())
@click.argument("destination", type=click.Path())
@_request_options
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
              envvar="RELOCATOR_TIMEOUT",
              help="Give up a cross-volume copy after this many seconds.")
@click.option("--workers", type=click.IntRange(min=1), default=1, show_default=True,
              envvar="RELOCATOR_WORKERS",
              help="Threads used to copy file contents across volumes.")
@click.option("--no-verify", is_flag=True, default=False, envvar="RELOCATOR_NO_VERIFY",
              help="Skip comparing the staged copy with the source.")
@_dry_run_option
@_format_option
@click.pass_context
def mv(ctx, source, destination, atomic, replace, timeout, workers, no_verify, dry_run, fmt):
    """Move SOURCE (file or directory) to DESTINATION.

    DESTINATION is the final path of the moved entry, not a directory to
    move into.  An existing DESTINATION is an error unless -f is given,
    in which case it is replaced as a whole (never merged).

    \b
    Examples:
        relocator mv report.pdf /mnt/usb/report.pdf
        relocator mv -f --workers 4 photos /mnt/nas/photos
        relocator mv -n data /mnt/usb/data      # dry run
    """
    relocator = Relocator(verify=not no_verify, workers=workers)
    if dry_run:
        _echo_plan(ctx, relocator.plan(source, destination, atomic=atomic,
                                       replace_existing=replace), fmt)
        return

    outcome = relocator.relocate(source, destination, atomic=atomic,
                                 replace_existing=replace, timeout=timeout)
    for w in outcome.warnings:
        click.echo(f"Warning: {w.message}", err=True)

    if fmt == "json":
        click.echo(json.dumps(_outcome_dict(outcome), indent=2))
        if not outcome.ok:
            ctx.exit(1)
        return
    if not outcome.ok:
        raise click.ClickException(outcome.failure.message)

    if outcome.atomic:
        _status(ctx, f"Renamed {source} -> {destination}")
    else:
        _status(ctx, f"Moved {source} -> {destination} ({outcome.method}, not atomic)")
    if atomic and not outcome.atomic:
        _status(ctx, "Atomic move was requested but not possible; completed without it")


@main.command()
@click.argument("source", type=click.Path())
@click.argument("destination", type=click.Path())
@_request_options
@_format_option
@click.pass_context
def plan(ctx, source, destination, atomic, replace, fmt):
    """Show whether moving SOURCE to DESTINATION would rename or copy.

    Checks the same preconditions as mv and exits 1 if they fail.
    Nothing is changed.
    """
    _echo_plan(ctx, Relocator().plan(source, destination, atomic=atomic,
                                     replace_existing=replace), fmt)
