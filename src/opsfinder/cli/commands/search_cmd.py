from __future__ import annotations

import argparse

from rich.markup import escape
from rich.table import Table

from opsfinder.application.services.project_service import ProjectService
from opsfinder.application.services.search_service import SearchService
from opsfinder.cli.context import CLIContext
from opsfinder.infrastructure.db.repos.cell_repo import CellRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("search", help="Find cells containing every keyword")
    parser.add_argument("keywords", help="Comma-separated keywords, e.g. 'server,rack 4'")
    parser.add_argument("--file-id", default=None)
    parser.add_argument("--sheet", dest="sheet_name", default=None)
    parser.add_argument("--page", type=int, default=0)
    parser.add_argument("--page-size", type=int, default=20)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ProjectService(ctx.paths).require_initialized()
    service = SearchService(CellRepo(ctx.paths.db_path))
    result = service.search(
        args.keywords,
        file_id=args.file_id,
        sheet_name=args.sheet_name,
        page=args.page,
        page_size=args.page_size,
    )

    table = Table(title=f"Matches (page {result.page + 1}/{max(result.total_pages, 1)}, {result.total} total)")
    table.add_column("File", overflow="fold")
    table.add_column("Sheet")
    table.add_column("Row", justify="right")
    table.add_column("Column")
    table.add_column("Value", overflow="fold")
    table.add_column("Row Context", overflow="fold")

    for hit in result.items:
        context = " | ".join(
            f"[bold]{escape(cell.column_header)}: {escape(cell.cell_value)}[/bold]"
            if cell.is_matched_cell
            else f"{escape(cell.column_header)}: {escape(cell.cell_value)}"
            for cell in hit.row_data
        )
        table.add_row(
            hit.file_name,
            hit.sheet_name,
            str(hit.row_number),
            escape(hit.column_header),
            escape(hit.cell_value),
            context,
        )

    ctx.console.print(table)
    return 0
