from __future__ import annotations

import argparse

from rich.table import Table

from opsfinder.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("show", help="Show one file and its sheets")
    parser.add_argument("file_id")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    detail = ctx.spreadsheet_service().get_file(args.file_id)
    f = detail.file

    ctx.console.print(f"[bold]{f.original_filename}[/bold] ({f.id})")
    ctx.console.print(f"Uploaded by {f.uploaded_by} at {f.uploaded_at}, {f.file_size} bytes")
    ctx.console.print(f"Blob: {f.storage_path}")

    table = Table(title=f"Sheets ({len(detail.sheets)})")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Rows", justify="right")
    table.add_column("Columns", justify="right")
    table.add_column("Headers", overflow="fold")

    for sheet in detail.sheets:
        table.add_row(
            str(sheet.sheet_index),
            sheet.sheet_name,
            str(sheet.row_count),
            str(sheet.column_count),
            ", ".join(sheet.headers),
        )

    ctx.console.print(table)
    return 0
