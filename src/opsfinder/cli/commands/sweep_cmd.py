from __future__ import annotations

import argparse

from opsfinder.application.services.spreadsheet_service import SWEEP_MIN_AGE_SECONDS
from opsfinder.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("sweep", help="Remove stored blobs that no active file references")
    parser.add_argument("--dry-run", action="store_true", help="Only list orphaned blobs")
    parser.add_argument(
        "--min-age",
        type=float,
        default=SWEEP_MIN_AGE_SECONDS,
        help=f"Skip blobs modified in the last N seconds (default: {SWEEP_MIN_AGE_SECONDS})",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    orphans = ctx.spreadsheet_service().sweep_orphans(dry_run=args.dry_run, min_age_seconds=args.min_age)
    if not orphans:
        ctx.console.print("[green]No orphaned blobs[/green]")
        return 0

    verb = "Would remove" if args.dry_run else "Removed"
    for path in orphans:
        ctx.console.print(f"[yellow]{verb}[/yellow] {path}")
    ctx.console.print(f"{len(orphans)} orphaned blob(s)")
    return 0
