from __future__ import annotations

import argparse

from rich.table import Table

from opsfinder.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("stats", help="Show index totals")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    stats = ctx.spreadsheet_service().stats()

    table = Table(title="Index Statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Files (all)", str(stats.total_files))
    table.add_row("Files (active)", str(stats.active_files))
    table.add_row("Sheets", str(stats.total_sheets))
    table.add_row("Cells", str(stats.total_cells))
    table.add_row("Storage bytes", str(stats.total_storage_bytes))

    ctx.console.print(table)
    return 0
