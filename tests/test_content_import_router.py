"""
tests/test_content_import_router.py

HTTP contract tests for the import and audit endpoints, using FastAPI's
TestClient against the in-memory database.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from app.config import ContentImportSettings
from app.main import create_app
from app.services.content_import_service import ContentImportService, get_content_import_service
from app.services.record_audit_service import RecordAuditService, get_record_audit_service
from db.session import get_db

HEADERS = {"X-Actor-Id": "admin-1", "X-Actor-Name": "Ada Admin"}


@pytest.fixture()
def app(session_factory: sessionmaker[Session], service: ContentImportService) -> FastAPI:
    application = create_app(validate_env=False, lifespan=False)

    def _get_db() -> Iterator[Session]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = _get_db
    application.dependency_overrides[get_content_import_service] = lambda: service
    application.dependency_overrides[get_record_audit_service] = lambda: RecordAuditService()
    return application


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _submit(client: TestClient, records: list[Any], **body: Any) -> Any:
    return client.post("/admin/import", json={"records": records, **body}, headers=HEADERS)


class TestImportEndpoints:
    def test_health(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "ok"}

    def test_valid_import_is_accepted_and_completes(self, client: TestClient, record_factory) -> None:
        response = _submit(client, [record_factory(), record_factory(text="Another")])

        assert response.status_code == 202
        body = response.json()
        assert body["total"] == 2
        assert body["valid_count"] == 2
        assert body["message"] == "Import started"

        progress = client.get(f"/admin/import/{body['batch_id']}/progress", headers=HEADERS)
        assert progress.status_code == 200
        assert progress.json()["status"] == "completed"
        assert progress.json()["progress_percentage"] == 100
        assert progress.json()["is_complete"] is True

    def test_invalid_rows_return_validation_report(self, client: TestClient, record_factory) -> None:
        response = _submit(client, [record_factory(), record_factory(micro_skill_id=99), "oops"])

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "validating"
        assert body["validation_summary"] == {"valid": 1, "invalid": 2, "warnings": 0}
        assert [item["row"] for item in body["errors"]] == [2, 3]
        assert "Invalid micro_skill_id" in body["errors"][0]["messages"]

    def test_missing_actor_is_unauthorized(self, client: TestClient, record_factory) -> None:
        response = client.post("/admin/import", json={"records": [record_factory()]})
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "UNAUTHENTICATED"

    def test_non_json_file_type_is_not_implemented(self, client: TestClient, record_factory) -> None:
        response = _submit(client, [record_factory()], file_type="csv")
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "NOT_IMPLEMENTED"

    def test_oversized_import_is_rejected(
        self,
        app: FastAPI,
        client: TestClient,
        session_factory: sessionmaker[Session],
        record_factory,
    ) -> None:
        small = ContentImportService(
            session_factory=session_factory,
            settings=ContentImportSettings(max_records_per_import=1, chunk_pause_seconds=0.0),
        )
        app.dependency_overrides[get_content_import_service] = lambda: small

        response = _submit(client, [record_factory(), record_factory()])

        assert response.status_code == 413
        assert response.json()["detail"]["error"] == "TOO_MANY_RECORDS"

    def test_unknown_batch_progress_is_not_found(self, client: TestClient) -> None:
        response = client.get(f"/admin/import/{uuid.uuid4()}/progress", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "BATCH_NOT_FOUND"

    def test_cancel_after_completion_conflicts(self, client: TestClient, record_factory) -> None:
        batch_id = _submit(client, [record_factory()]).json()["batch_id"]

        response = client.post(f"/admin/import/{batch_id}/cancel", headers=HEADERS)

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "CANNOT_CANCEL"

    def test_validating_batch_can_be_cancelled(self, client: TestClient, record_factory) -> None:
        batch_id = _submit(client, [record_factory(module_id=-1)]).json()["batch_id"]

        response = client.post(f"/admin/import/{batch_id}/cancel", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_rollback_then_second_rollback_conflicts(self, client: TestClient, record_factory) -> None:
        batch_id = _submit(client, [record_factory(), record_factory(), record_factory()]).json()["batch_id"]

        first = client.post(f"/admin/import/{batch_id}/rollback", headers=HEADERS)
        assert first.status_code == 200
        assert first.json()["rolled_back_count"] == 3
        assert first.json()["message"] == "Import rolled back. 3 records deleted."

        second = client.post(f"/admin/import/{batch_id}/rollback", headers=HEADERS)
        assert second.status_code == 409
        assert second.json()["detail"]["error"] == "ALREADY_ROLLED_BACK"

    def test_history_lists_own_batches(self, client: TestClient, record_factory) -> None:
        _submit(client, [record_factory()], file_name="mine.json")
        client.post(
            "/admin/import",
            json={"records": [record_factory()], "file_name": "theirs.json"},
            headers={"X-Actor-Id": "admin-9"},
        )

        response = client.get("/admin/import/history", headers=HEADERS)

        assert response.status_code == 200
        imports = response.json()["imports"]
        assert [item["file_name"] for item in imports] == ["mine.json"]
        assert imports[0]["actor_name"] == "Ada Admin"

    def test_active_lists_only_unfinished_batches(self, client: TestClient, record_factory) -> None:
        pending = _submit(client, [record_factory(module_id=99)]).json()
        _submit(client, [record_factory()], file_name="done.json")

        response = client.get("/admin/import/active", headers=HEADERS)

        assert response.status_code == 200
        imports = response.json()["imports"]
        assert [item["batch_id"] for item in imports] == [pending["batch_id"]]
        assert imports[0]["status"] == "validating"
        assert imports[0]["file_name"] == "json_import.json"

    def test_active_requires_actor(self, client: TestClient) -> None:
        response = client.get("/admin/import/active")
        assert response.status_code == 401

    def test_upload_accepts_records_document(self, client: TestClient, record_factory) -> None:
        document = json.dumps({"records": [record_factory()]}).encode()

        response = client.post(
            "/admin/import/upload",
            files={"file": ("questions.json", document, "application/json")},
            headers=HEADERS,
        )

        assert response.status_code == 202
        assert response.json()["valid_count"] == 1

    def test_upload_rejects_non_json_file(self, client: TestClient) -> None:
        response = client.post(
            "/admin/import/upload",
            files={"file": ("questions.csv", b"module_id\n1\n", "text/csv")},
            headers=HEADERS,
        )
        assert response.status_code == 400


class TestAuditEndpoints:
    def test_batch_and_record_history(self, client: TestClient, record_factory) -> None:
        batch_id = _submit(client, [record_factory(), record_factory()]).json()["batch_id"]

        batch_entries = client.get(f"/admin/audit/batches/{batch_id}", headers=HEADERS).json()["entries"]
        assert len(batch_entries) == 2
        assert {entry["action"] for entry in batch_entries} == {"created"}
        assert batch_entries[0]["context"]["user_agent"] == "testclient"

        record_id = batch_entries[0]["record_id"]
        history = client.get(f"/admin/audit/records/{record_id}", headers=HEADERS).json()["entries"]
        assert [entry["record_id"] for entry in history] == [record_id]

    def test_summary_counts_actions_by_actor(self, client: TestClient, record_factory) -> None:
        batch_id = _submit(client, [record_factory(), record_factory()]).json()["batch_id"]
        client.post(f"/admin/import/{batch_id}/rollback", headers=HEADERS)

        summary = client.get("/admin/audit/summary", headers=HEADERS).json()

        assert summary["total_actions"] == 4
        assert summary["by_action"] == {"created": 2, "deleted": 2}
        assert summary["by_actor"] == [{"actor_id": "admin-1", "actor_name": "Ada Admin", "count": 4}]

        deleted = client.get("/admin/audit", params={"action": "deleted"}, headers=HEADERS).json()["entries"]
        assert len(deleted) == 2
        assert {entry["reason"] for entry in deleted} == {"batch rollback"}

    def test_audit_requires_actor(self, client: TestClient) -> None:
        assert client.get("/admin/audit/summary").status_code == 401
