"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import json

import click

from .._types import RelocationOutcome, RelocationPlan


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _dry_run_option(f):
    """Shared -n/--dry-run flag."""
    return click.option(
        "-n", "--dry-run", "dry_run", is_flag=True, default=False,
        help="Show what would happen without changing anything.",
    )(f)


def _format_option(f):
    """Shared --format text|json option."""
    return click.option(
        "--format", "fmt", default="text", type=click.Choice(["text", "json"]),
        help="Output format.",
    )(f)


def _request_options(f):
    """Shared --atomic / --replace options for mv and plan."""
    f = click.option("-f", "--replace", is_flag=True, default=False,
                     help="Replace an existing destination (never merged into).")(f)
    f = click.option("--atomic", is_flag=True, default=False,
                     help="Prefer a single atomic rename. Cross-volume moves "
                          "still complete by copying.")(f)
    return f


def _outcome_dict(outcome: RelocationOutcome) -> dict:
    req = outcome.request
    return {
        "source": str(req.source),
        "destination": str(req.destination),
        "ok": outcome.ok,
        "method": str(outcome.method) if outcome.method else None,
        "atomic": outcome.atomic,
        "failure": None if outcome.failure is None else {
            "kind": str(outcome.failure.kind),
            "message": outcome.failure.message,
            "path": str(outcome.failure.path) if outcome.failure.path else None,
        },
        "warnings": [
            {"kind": str(w.kind), "path": str(w.path), "message": w.message}
            for w in outcome.warnings
        ],
    }


def _plan_dict(p: RelocationPlan) -> dict:
    return {
        "source": str(p.request.source),
        "destination": str(p.request.destination),
        "ok": p.ok,
        "method": str(p.method) if p.method else None,
        "same_volume": p.same_volume,
        "destination_exists": p.destination_exists,
        "failure": None if p.failure is None else {
            "kind": str(p.failure.kind),
            "message": p.failure.message,
        },
    }


def _echo_plan(ctx, p: RelocationPlan, fmt: str):
    """Print a plan; exit 1 if its preconditions fail."""
    if fmt == "json":
        click.echo(json.dumps(_plan_dict(p), indent=2))
        if not p.ok:
            ctx.exit(1)
        return
    if not p.ok:
        raise click.ClickException(p.failure.message)
    note = "" if p.same_volume else " (cross-volume copy)"
    replace = " [replace]" if p.destination_exists else ""
    click.echo(f"{p.method} {p.request.source} -> {p.request.destination}{note}{replace}")


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, verbose):
    """relocator: move files and directory trees safely, across volumes.

    Same-volume moves are a single atomic rename.  Cross-volume moves copy
    into a staging entry beside the destination, verify it, swap it in
    with one rename, and only then delete the source.

    \b
    Quick start:
      relocator mv build/out /mnt/archive/out
      relocator mv -f new.cfg /etc/app/app.cfg      # replace destination
      relocator plan data /mnt/usb/data             # rename or copy?
      relocator sweep /mnt/archive                  # clean up after a crash

    \b
    Environment:
      RELOCATOR_WORKERS    default for mv --workers
      RELOCATOR_TIMEOUT    default for mv --timeout
      RELOCATOR_NO_VERIFY  set to 1 to skip copy verification
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
