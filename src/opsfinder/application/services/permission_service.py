from __future__ import annotations

import logging
from collections.abc import Iterable

from opsfinder.core.errors import PermissionDeniedError
from opsfinder.domain.models.spreadsheet import SpreadsheetFile

logger = logging.getLogger(__name__)

ROLE_ADMIN = "ROLE_ADMIN"
ROLE_OPERATOR = "ROLE_OPERATOR"


def parse_roles(raw: str | Iterable[str] | None) -> frozenset[str]:
    if raw is None:
        return frozenset()
    items = raw.split(",") if isinstance(raw, str) else raw
    return frozenset(item.strip() for item in items if item and item.strip())


class DeletePermissionGate:
    """Admins may delete anything; operators only what they uploaded."""

    def can_delete(self, file: SpreadsheetFile, requester: str, roles: Iterable[str]) -> bool:
        granted = set(roles)
        if ROLE_ADMIN in granted:
            return True
        if ROLE_OPERATOR in granted:
            return file.uploaded_by == requester
        return False

    def check_delete(self, file: SpreadsheetFile, requester: str, roles: Iterable[str]) -> None:
        if not self.can_delete(file, requester, roles):
            logger.warning("User %s denied delete of file %s", requester, file.id)
            raise PermissionDeniedError(f"User {requester!r} may not delete file {file.id}")
