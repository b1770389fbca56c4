from __future__ import annotations

import argparse
import getpass
import mimetypes
from pathlib import Path

from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from opsfinder.cli.context import CLIContext
from opsfinder.core.errors import IndexFault, StorageFault, ValidationError


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("upload", help="Parse, store and index one or more .xlsx files")
    parser.add_argument("paths", nargs="+", help="Local .xlsx files to upload")
    parser.add_argument(
        "--as",
        dest="uploaded_by",
        default=None,
        help="Uploader identity recorded on each file (default: current OS user)",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    service = ctx.spreadsheet_service()
    uploaded_by = args.uploaded_by or getpass.getuser()

    table = Table(title="Upload Results")
    table.add_column("File", overflow="fold")
    table.add_column("Status")
    table.add_column("ID / Error", overflow="fold")
    table.add_column("Sheets", justify="right")
    table.add_column("Cells", justify="right")

    exit_code = 0
    paths = [Path(p).expanduser() for p in args.paths]

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=ctx.console,
    )

    with progress:
        task = progress.add_task("Uploading", total=len(paths))
        for p in paths:
            try:
                if not p.is_file():
                    raise ValidationError(f"File not found: {p}")
                content = p.read_bytes()
                result = service.upload(
                    content,
                    p.name,
                    len(content),
                    mimetypes.guess_type(p.name)[0],
                    uploaded_by,
                )
                table.add_row(str(p), "indexed", result.id, str(result.sheet_count), str(result.cell_count))
            except (ValidationError, StorageFault, IndexFault) as exc:
                table.add_row(str(p), "[red]error[/red]", str(exc), "", "")
                exit_code = 1
            finally:
                progress.advance(task, 1)

    ctx.console.print(table)
    return exit_code
