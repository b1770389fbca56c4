from __future__ import annotations

import argparse

from opsfinder.application.services.permission_service import ROLE_ADMIN, ROLE_OPERATOR
from opsfinder.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("delete", help="Soft-delete a file and remove its stored bytes")
    parser.add_argument("file_id")
    parser.add_argument("--as", dest="requester", required=True, help="Identity performing the delete")
    parser.add_argument(
        "--role",
        dest="roles",
        action="append",
        default=[],
        help=f"Role held by the requester, repeatable ({ROLE_ADMIN}, {ROLE_OPERATOR})",
    )
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    ctx.spreadsheet_service().delete(args.file_id, args.requester, args.roles)
    ctx.console.print(f"[green]Deleted[/green] {args.file_id}")
    return 0
