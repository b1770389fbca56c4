from __future__ import annotations

import argparse

from rich.table import Table

from opsfinder.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("files", help="List indexed files, newest first")
    parser.add_argument("--uploaded-by", default=None)
    parser.add_argument("--page", type=int, default=0)
    parser.add_argument("--page-size", type=int, default=20)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    result = ctx.spreadsheet_service().list_files(
        uploaded_by=args.uploaded_by,
        page=args.page,
        page_size=args.page_size,
    )

    table = Table(title=f"Files (page {result.page + 1}/{max(result.total_pages, 1)}, {result.total} total)")
    table.add_column("ID", overflow="fold")
    table.add_column("Filename", overflow="fold")
    table.add_column("Uploaded By")
    table.add_column("Uploaded At")
    table.add_column("Sheets", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("Cells", justify="right")
    table.add_column("Size", justify="right")

    for f in result.items:
        table.add_row(
            f.id,
            f.original_filename,
            f.uploaded_by,
            f.uploaded_at,
            str(f.sheet_count),
            str(f.row_count),
            str(f.cell_count),
            str(f.file_size),
        )

    ctx.console.print(table)
    return 0
