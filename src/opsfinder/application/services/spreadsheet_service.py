from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from pathlib import Path

from opsfinder.application.services.indexing_service import IndexingService
from opsfinder.application.services.permission_service import DeletePermissionGate
from opsfinder.application.services.spreadsheet_parser import SpreadsheetParser
from opsfinder.core.config import DEFAULT_MAX_UPLOAD_BYTES, AppPaths, AppSettings
from opsfinder.core.errors import NotFoundError, ValidationError
from opsfinder.domain.models.search import Page
from opsfinder.domain.models.spreadsheet import (
    SpreadsheetFile,
    SpreadsheetFileDetail,
    SpreadsheetStats,
)
from opsfinder.infrastructure.db.repos.cell_repo import CellRepo
from opsfinder.infrastructure.db.repos.index_repo import SpreadsheetIndexRepo
from opsfinder.infrastructure.db.repos.sheet_repo import SheetRepo
from opsfinder.infrastructure.db.repos.spreadsheet_file_repo import SpreadsheetFileRepo
from opsfinder.infrastructure.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLSX_EXTENSION = ".xlsx"
MAX_PAGE_SIZE = 100
# Blobs younger than this may belong to an upload that has not been indexed yet.
SWEEP_MIN_AGE_SECONDS = 600


class SpreadsheetService:
    """Upload, inspect and remove indexed spreadsheets.

    Upload runs parse, store, index in that order. The only compensation is removing the
    stored blob when indexing fails; a rejected or unparseable upload never touches disk.
    """

    def __init__(
        self,
        file_repo: SpreadsheetFileRepo,
        sheet_repo: SheetRepo,
        cell_repo: CellRepo,
        blob_store: BlobStore,
        parser: SpreadsheetParser,
        indexing_service: IndexingService,
        permission_gate: DeletePermissionGate | None = None,
        *,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        self.file_repo = file_repo
        self.sheet_repo = sheet_repo
        self.cell_repo = cell_repo
        self.blob_store = blob_store
        self.parser = parser
        self.indexing_service = indexing_service
        self.permission_gate = permission_gate or DeletePermissionGate()
        self.max_upload_bytes = max_upload_bytes

    def upload(
        self,
        content: bytes | None,
        original_filename: str,
        file_size: int,
        content_type: str | None,
        uploaded_by: str,
    ) -> SpreadsheetFile:
        self._validate_upload(content, original_filename, file_size, content_type)

        document = self.parser.parse(content, original_filename, file_size)
        blob_path = self.blob_store.store(content, original_filename)
        try:
            spreadsheet_file = self.indexing_service.index(document, blob_path, uploaded_by)
        except Exception:
            logger.warning("Indexing failed for %s, removing stored blob %s", original_filename, blob_path)
            self.blob_store.delete(blob_path)
            raise

        logger.info(
            "Uploaded %s as %s by %s (%d sheets, %d cells)",
            original_filename,
            spreadsheet_file.id,
            uploaded_by,
            spreadsheet_file.sheet_count,
            spreadsheet_file.cell_count,
        )
        return spreadsheet_file

    def get_file(self, file_id: str) -> SpreadsheetFileDetail:
        spreadsheet_file = self._require_active(file_id)
        return SpreadsheetFileDetail(
            file=spreadsheet_file,
            sheets=self.sheet_repo.list_for_file(spreadsheet_file.id),
        )

    def list_files(
        self,
        *,
        uploaded_by: str | None = None,
        page: int = 0,
        page_size: int = 20,
    ) -> Page[SpreadsheetFile]:
        if page < 0:
            raise ValidationError("page must be >= 0")
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        uploaded_by = uploaded_by or None
        items = self.file_repo.list_active(
            uploaded_by=uploaded_by,
            limit=page_size,
            offset=page * page_size,
        )
        total = self.file_repo.count_active(uploaded_by=uploaded_by)
        return Page(items=items, total=total, page=page, page_size=page_size)

    def delete(self, file_id: str, requester: str, roles: Iterable[str]) -> None:
        spreadsheet_file = self._require_active(file_id)
        self.permission_gate.check_delete(spreadsheet_file, requester, roles)

        if not self.file_repo.mark_deleted(spreadsheet_file.id):
            # Lost a race with a concurrent delete.
            raise NotFoundError(f"Excel file not found: {file_id}")
        self.blob_store.delete(spreadsheet_file.storage_path)
        logger.info("Deleted file %s (%s) by %s", file_id, spreadsheet_file.original_filename, requester)

    def stats(self) -> SpreadsheetStats:
        return SpreadsheetStats(
            total_files=self.file_repo.count_all(),
            active_files=self.file_repo.count_active(),
            total_sheets=self.sheet_repo.count_active(),
            total_cells=self.cell_repo.count_active(),
            total_storage_bytes=self.file_repo.total_active_storage_bytes(),
        )

    def open_blob(self, file_id: str) -> tuple[SpreadsheetFile, Path]:
        spreadsheet_file = self._require_active(file_id)
        return spreadsheet_file, self.blob_store.retrieve(spreadsheet_file.storage_path)

    def sweep_orphans(
        self,
        *,
        dry_run: bool = False,
        min_age_seconds: float = SWEEP_MIN_AGE_SECONDS,
    ) -> list[Path]:
        """Remove stored blobs that no ACTIVE file references. Returns the orphans found.

        Blobs modified within the last ``min_age_seconds`` are left alone.
        """
        cutoff = time.time() - min_age_seconds
        referenced = {str(Path(path).resolve()) for path in self.file_repo.list_active_storage_paths()}
        orphans = [
            blob
            for blob in self.blob_store.iter_blobs()
            if str(blob.resolve()) not in referenced and self._modified_before(blob, cutoff)
        ]
        for blob in orphans:
            if dry_run:
                logger.info("Orphaned blob (dry run): %s", blob)
                continue
            self.blob_store.delete(str(blob))
        if orphans:
            logger.info("Found %d orphaned blobs%s", len(orphans), " (dry run)" if dry_run else "")
        return orphans

    @staticmethod
    def _modified_before(blob: Path, cutoff: float) -> bool:
        try:
            return blob.stat().st_mtime <= cutoff
        except FileNotFoundError:
            return False

    def _require_active(self, file_id: str) -> SpreadsheetFile:
        spreadsheet_file = self.file_repo.get_by_id(file_id)
        if spreadsheet_file is None or not spreadsheet_file.is_active:
            raise NotFoundError(f"Excel file not found: {file_id}")
        return spreadsheet_file

    def _validate_upload(
        self,
        content: bytes | None,
        original_filename: str,
        file_size: int,
        content_type: str | None,
    ) -> None:
        if not content or file_size <= 0:
            raise ValidationError("File is empty or not provided")
        if file_size > self.max_upload_bytes:
            raise ValidationError(
                f"File size {file_size} exceeds maximum allowed size of {self.max_upload_bytes} bytes"
            )
        name_ok = (original_filename or "").lower().endswith(XLSX_EXTENSION)
        if content_type != XLSX_CONTENT_TYPE and not name_ok:
            raise ValidationError("Invalid file type. Only .xlsx files are allowed")


def build_spreadsheet_service(paths: AppPaths, settings: AppSettings | None = None) -> SpreadsheetService:
    settings = settings or AppSettings()
    return SpreadsheetService(
        file_repo=SpreadsheetFileRepo(paths.db_path),
        sheet_repo=SheetRepo(paths.db_path),
        cell_repo=CellRepo(paths.db_path),
        blob_store=BlobStore(paths.storage_dir),
        parser=SpreadsheetParser(),
        indexing_service=IndexingService(SpreadsheetIndexRepo(paths.db_path)),
        max_upload_bytes=settings.max_upload_bytes,
    )
