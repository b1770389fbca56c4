from __future__ import annotations

from dataclasses import asdict, is_dataclass
from typing import Any

from fastapi import FastAPI, File, Header, HTTPException, Query, Response, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from opsfinder.application.services.permission_service import ROLE_ADMIN, parse_roles
from opsfinder.application.services.project_service import ProjectService
from opsfinder.application.services.search_service import MAX_PAGE_SIZE, SearchService
from opsfinder.application.services.spreadsheet_service import (
    SWEEP_MIN_AGE_SECONDS,
    XLSX_CONTENT_TYPE,
    SpreadsheetService,
    build_spreadsheet_service,
)
from opsfinder.core.config import AppPaths, AppSettings, load_settings
from opsfinder.core.errors import (
    IndexFault,
    NotFoundError,
    OpsFinderError,
    PermissionDeniedError,
    StorageFault,
    ValidationError,
)
from opsfinder.domain.models.search import Page
from opsfinder.domain.models.spreadsheet import Sheet, SpreadsheetFile
from opsfinder.infrastructure.db.repos.cell_repo import CellRepo

ANONYMOUS_USER = "anonymous"

_STATUS_BY_ERROR: list[tuple[type[OpsFinderError], int]] = [
    (ValidationError, 400),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (StorageFault, 500),
    (IndexFault, 500),
]


class SweepRequest(BaseModel):
    dry_run: bool = False
    min_age_seconds: float = Field(default=SWEEP_MIN_AGE_SECONDS, ge=0)


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def _http_error(exc: OpsFinderError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _file_summary(spreadsheet_file: SpreadsheetFile) -> dict[str, Any]:
    return {
        "id": spreadsheet_file.id,
        "original_filename": spreadsheet_file.original_filename,
        "file_size": spreadsheet_file.file_size,
        "uploaded_by": spreadsheet_file.uploaded_by,
        "uploaded_at": spreadsheet_file.uploaded_at,
        "sheet_count": spreadsheet_file.sheet_count,
        "row_count": spreadsheet_file.row_count,
        "cell_count": spreadsheet_file.cell_count,
        "status": spreadsheet_file.status,
    }


def _sheet_payload(sheet: Sheet) -> dict[str, Any]:
    return {
        "sheet_id": sheet.id,
        "sheet_name": sheet.sheet_name,
        "sheet_index": sheet.sheet_index,
        "row_count": sheet.row_count,
        "column_count": sheet.column_count,
        "headers": list(sheet.headers),
    }


def _page_payload(page: Page, items: list[Any]) -> dict[str, Any]:
    return {
        "items": items,
        "total": page.total,
        "page": page.page,
        "page_size": page.page_size,
        "total_pages": page.total_pages,
    }


def create_app(paths: AppPaths, settings: AppSettings | None = None) -> FastAPI:
    app = FastAPI(title="OpsFinder", version="0.1.0")
    settings = settings or load_settings()

    project_service = ProjectService(paths)
    project_service.init_project()

    def get_spreadsheet_service() -> SpreadsheetService:
        return build_spreadsheet_service(paths, settings)

    def get_search_service() -> SearchService:
        return SearchService(CellRepo(paths.db_path))

    @app.post("/api/excel-files/upload")
    async def api_upload(
        file: UploadFile | None = File(default=None),
        x_user: str = Header(default=ANONYMOUS_USER),
    ) -> dict[str, Any]:
        if file is None:
            raise HTTPException(status_code=400, detail="File is empty or not provided")
        content = await file.read()
        try:
            spreadsheet_file = get_spreadsheet_service().upload(
                content,
                file.filename or "",
                len(content),
                file.content_type,
                x_user or ANONYMOUS_USER,
            )
        except OpsFinderError as exc:
            raise _http_error(exc) from exc
        return _file_summary(spreadsheet_file)

    @app.get("/api/excel-files")
    def api_list_files(
        uploaded_by: str | None = None,
        page: int = Query(default=0, ge=0),
        page_size: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    ) -> dict[str, Any]:
        try:
            result = get_spreadsheet_service().list_files(
                uploaded_by=uploaded_by,
                page=page,
                page_size=page_size,
            )
        except OpsFinderError as exc:
            raise _http_error(exc) from exc
        return _page_payload(result, [_file_summary(item) for item in result.items])

    @app.get("/api/excel-files/search")
    def api_search(
        keywords: str = "",
        file_id: str | None = None,
        sheet_name: str | None = None,
        page: int = 0,
        page_size: int = 20,
    ) -> dict[str, Any]:
        try:
            result = get_search_service().search(
                keywords,
                file_id=file_id,
                sheet_name=sheet_name,
                page=page,
                page_size=page_size,
            )
        except OpsFinderError as exc:
            raise _http_error(exc) from exc
        return _page_payload(result, _jsonable(result.items))

    @app.get("/api/excel-files/stats")
    def api_stats() -> dict[str, Any]:
        return _jsonable(get_spreadsheet_service().stats())

    @app.post("/api/excel-files/sweep")
    def api_sweep(
        req: SweepRequest,
        x_roles: str = Header(default=""),
    ) -> dict[str, Any]:
        if ROLE_ADMIN not in parse_roles(x_roles):
            raise HTTPException(status_code=403, detail="Only administrators may sweep storage")
        orphans = get_spreadsheet_service().sweep_orphans(
            dry_run=req.dry_run,
            min_age_seconds=req.min_age_seconds,
        )
        return {"dry_run": req.dry_run, "orphans": [str(path) for path in orphans]}

    @app.get("/api/excel-files/{file_id}")
    def api_file_detail(file_id: str) -> dict[str, Any]:
        try:
            detail = get_spreadsheet_service().get_file(file_id)
        except OpsFinderError as exc:
            raise _http_error(exc) from exc
        payload = _file_summary(detail.file)
        payload["sheets"] = [_sheet_payload(sheet) for sheet in detail.sheets]
        return payload

    @app.get("/api/excel-files/{file_id}/content")
    def api_file_content(file_id: str, download: bool = True) -> FileResponse:
        try:
            spreadsheet_file, blob_path = get_spreadsheet_service().open_blob(file_id)
        except OpsFinderError as exc:
            raise _http_error(exc) from exc
        response = FileResponse(
            path=str(blob_path),
            media_type=XLSX_CONTENT_TYPE,
            filename=spreadsheet_file.original_filename,
            content_disposition_type="attachment" if download else "inline",
        )
        response.headers["X-OpsFinder-File-Id"] = spreadsheet_file.id
        return response

    @app.delete("/api/excel-files/{file_id}", status_code=204)
    def api_delete_file(
        file_id: str,
        x_user: str = Header(default=ANONYMOUS_USER),
        x_roles: str = Header(default=""),
    ) -> Response:
        try:
            get_spreadsheet_service().delete(file_id, x_user or ANONYMOUS_USER, parse_roles(x_roles))
        except OpsFinderError as exc:
            raise _http_error(exc) from exc
        return Response(status_code=204)

    return app
