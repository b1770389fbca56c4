from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from opsfinder.core.config import AppPaths, AppSettings
from opsfinder.infrastructure.db.repos.index_repo import SpreadsheetIndexRepo
from opsfinder.web.app import create_app
from xlsx_builder import build_xlsx, damage_member

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _client(tmp_path: Path, *, max_upload_bytes: int = 10 * 1024 * 1024) -> tuple[TestClient, AppPaths]:
    project_root = tmp_path / "proj"
    project_root.mkdir(parents=True, exist_ok=True)
    home = project_root / ".opsfinder"
    paths = AppPaths(
        project_root=project_root,
        home_dir=home,
        db_path=home / "opsfinder.db",
        storage_dir=home / "excel-files",
    )
    app = create_app(paths, AppSettings(max_upload_bytes=max_upload_bytes))
    return TestClient(app), paths


def _upload(client: TestClient, content: bytes, name: str = "inventory.xlsx", user: str = "alice"):
    return client.post(
        "/api/excel-files/upload",
        files={"file": (name, content, XLSX)},
        headers={"X-User": user},
    )


def _two_sheet_workbook() -> bytes:
    return build_xlsx(
        [
            ("Servers", [["Name", "IP"], ["srv1", "10.0.0.1"]]),
            ("Racks", [["Rack", "Row"], ["R4", 2], ["R5", 3]]),
        ]
    )


def test_upload_then_get_file(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path)

    r = _upload(client, _two_sheet_workbook())
    assert r.status_code == 200
    summary = r.json()
    assert summary["sheet_count"] == 2
    assert summary["uploaded_by"] == "alice"
    assert summary["status"] == "ACTIVE"
    assert "storage_path" not in summary

    r = client.get(f"/api/excel-files/{summary['id']}")
    assert r.status_code == 200
    detail = r.json()
    assert detail["sheets"][0]["sheet_name"] == "Servers"
    assert detail["sheets"][0]["headers"] == ["Name", "IP"]
    assert detail["sheets"][0]["row_count"] == 1
    assert detail["sheets"][1]["column_count"] == 2


def test_search_and_semantics_over_http(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path)
    content = build_xlsx([("Sheet1", [["Host", "Note"], ["Alpha-Server", "primary"], ["gamma", "beta"]])])
    file_id = _upload(client, content).json()["id"]

    r = client.get("/api/excel-files/search", params={"keywords": "alpha"})
    assert r.status_code == 200
    page = r.json()
    assert page["total"] == 1
    assert page["total_pages"] == 1
    item = page["items"][0]
    assert item["cell_value"] == "Alpha-Server"
    assert item["file_id"] == file_id
    assert item["file_name"] == "inventory.xlsx"
    assert item["row_number"] == 1
    assert [c["cell_value"] for c in item["row_data"]] == ["Alpha-Server", "primary"]
    assert [c["is_matched_cell"] for c in item["row_data"]] == [True, False]

    r = client.get("/api/excel-files/search", params={"keywords": "alpha,beta"})
    assert r.status_code == 200
    assert r.json()["total"] == 0
    assert r.json()["items"] == []


def test_search_validation_errors_are_400(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path)

    assert client.get("/api/excel-files/search", params={"keywords": ""}).status_code == 400
    assert client.get("/api/excel-files/search", params={"keywords": "a,b,c,d,e,f"}).status_code == 400
    assert client.get("/api/excel-files/search", params={"keywords": "x" * 201}).status_code == 400
    r = client.get("/api/excel-files/search", params={"keywords": "x", "page_size": 500})
    assert r.status_code == 400


def test_index_fault_returns_500_and_leaves_nothing(tmp_path: Path, monkeypatch) -> None:
    client, paths = _client(tmp_path)

    def broken_write(self, spreadsheet_file, sheets, cell_batches):
        raise RuntimeError("index store unavailable")

    monkeypatch.setattr(SpreadsheetIndexRepo, "write_file", broken_write)

    r = _upload(client, _two_sheet_workbook())
    assert r.status_code == 500
    assert list(paths.storage_dir.rglob("*.xlsx")) == []

    listing = client.get("/api/excel-files").json()
    assert listing["total"] == 0
    assert client.get("/api/excel-files/stats").json()["total_files"] == 0


def test_upload_validation_errors_are_400(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path, max_upload_bytes=64)

    r = client.post("/api/excel-files/upload", files={"file": ("a.xlsx", b"", XLSX)})
    assert r.status_code == 400
    assert "empty" in r.json()["detail"]

    r = client.post("/api/excel-files/upload", files={"file": ("a.txt", b"hello", "text/plain")})
    assert r.status_code == 400

    r = _upload(client, _two_sheet_workbook())
    assert r.status_code == 400
    assert "exceeds maximum" in r.json()["detail"]

    assert client.post("/api/excel-files/upload").status_code == 400


def test_corrupt_upload_is_400(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path)

    r = _upload(client, b"not really a workbook")

    assert r.status_code == 400
    assert r.json()["detail"].startswith("Failed to parse Excel file")

    damaged = damage_member(_two_sheet_workbook(), "xl/worksheets/sheet1.xml")
    r = _upload(client, damaged)

    assert r.status_code == 400
    assert r.json()["detail"].startswith("Failed to parse Excel file")


def test_delete_flow_with_roles(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path)
    file_id = _upload(client, _two_sheet_workbook(), user="alice").json()["id"]

    r = client.delete(f"/api/excel-files/{file_id}", headers={"X-User": "bob", "X-Roles": "ROLE_OPERATOR"})
    assert r.status_code == 403

    r = client.delete(f"/api/excel-files/{file_id}", headers={"X-User": "alice"})
    assert r.status_code == 403

    r = client.delete(f"/api/excel-files/{file_id}", headers={"X-User": "alice", "X-Roles": "ROLE_OPERATOR"})
    assert r.status_code == 204

    assert client.get(f"/api/excel-files/{file_id}").status_code == 404
    r = client.delete(f"/api/excel-files/{file_id}", headers={"X-User": "root", "X-Roles": "ROLE_ADMIN"})
    assert r.status_code == 404

    r = client.get("/api/excel-files/search", params={"keywords": "srv1"})
    assert r.json()["total"] == 0

    stats = client.get("/api/excel-files/stats").json()
    assert stats == {
        "total_files": 1,
        "active_files": 0,
        "total_sheets": 0,
        "total_cells": 0,
        "total_storage_bytes": 0,
    }


def test_list_and_download(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path)
    content = _two_sheet_workbook()
    alice_id = _upload(client, content, name="a.xlsx", user="alice").json()["id"]
    _upload(client, content, name="b.xlsx", user="bob")

    r = client.get("/api/excel-files", params={"uploaded_by": "alice"})
    assert r.status_code == 200
    listing = r.json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == alice_id

    assert client.get("/api/excel-files", params={"page_size": 1}).json()["total_pages"] == 2

    r = client.get(f"/api/excel-files/{alice_id}/content")
    assert r.status_code == 200
    assert r.content == content
    assert r.headers["content-type"] == XLSX
    assert "a.xlsx" in r.headers["content-disposition"]

    assert client.get("/api/excel-files/missing/content").status_code == 404


def test_sweep_requires_admin(tmp_path: Path) -> None:
    client, _paths = _client(tmp_path)

    r = client.post("/api/excel-files/sweep", json={"dry_run": True})
    assert r.status_code == 403

    r = client.post("/api/excel-files/sweep", json={"dry_run": True}, headers={"X-Roles": "ROLE_ADMIN"})
    assert r.status_code == 200
    assert r.json() == {"dry_run": True, "orphans": []}
