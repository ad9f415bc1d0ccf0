"""Integration tests for the HTTP API."""

import base64
import io
from concurrent.futures import Executor, Future

import pytest
from docx import Document
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from cv_autofill.api.app import AppServices, create_app
from cv_autofill.config import AppSettings, DictionaryConfiguration, StaticSkillCatalog
from cv_autofill.feedback.database import DatabaseManager
from cv_autofill.feedback.feedback_store import FeedbackStore
from cv_autofill.feedback.job_repository import JobRepository
from cv_autofill.feedback.tenant_dictionary import TenantDictionary
from cv_autofill.jobs.job_service import ExtractionJobService
from cv_autofill.parsers.base import FormatDispatcher
from cv_autofill.pipeline import ExtractionPipeline


USER = {"X-User-Id": "operator-1"}

CV_PARAGRAPHS = [
    "Anna Beispiel",
    "anna.beispiel@example.ch",
    "Tel: 079 123 45 67",
    "Kenntnisse",
    "Python, SQL",
]


class SynchronousExecutor(Executor):
    """Runs submitted work immediately in the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def _upload_body(paragraphs=CV_PARAGRAPHS, file_name="anna.docx"):
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buffer = io.BytesIO()
    doc.save(buffer)
    data = buffer.getvalue()
    return {
        "fileBase64": base64.b64encode(data).decode("ascii"),
        "fileName": file_name,
        "fileType": "docx",
        "fileSize": len(data),
    }


def _services(settings: AppSettings) -> AppServices:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db_manager = DatabaseManager(engine=engine)
    skills = StaticSkillCatalog(["Python", "SQL"])
    tenant_dictionary = TenantDictionary(
        db_manager=db_manager,
        tenant_id=settings.default_tenant_id,
        base_configuration=DictionaryConfiguration(skills=["Python", "SQL"]),
    )
    job_service = ExtractionJobService(
        repository=JobRepository(db_manager=db_manager),
        pipeline=ExtractionPipeline(settings=settings, dispatcher=FormatDispatcher(), skill_catalog=skills),
        settings=settings,
        tenant_dictionary=tenant_dictionary,
        skill_catalog=skills,
        executor=SynchronousExecutor(),
    )
    return AppServices(
        settings=settings,
        db_manager=db_manager,
        feedback_store=FeedbackStore(db_manager=db_manager, tenant_id=settings.default_tenant_id),
        tenant_dictionary=tenant_dictionary,
        job_service=job_service,
    )


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def client(settings):
    app = create_app(_services(settings))
    with TestClient(app) as test_client:
        yield test_client


def test_submit_and_poll_job(client):
    """Test the upload and polling flow."""
    response = client.post("/api/cv/jobs", json=_upload_body(), headers=USER)

    assert response.status_code == 202
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Analyse gestartet"

    status = client.get(f"/api/cv/jobs/{body['jobId']}", headers=USER)

    assert status.status_code == 200
    payload = status.json()
    assert payload["status"] == "completed"
    fields = {f["targetField"]: f for f in payload["result"]["filledFields"]}
    assert fields["email"]["extractedValue"] == "anna.beispiel@example.ch"
    assert fields["email"]["source"]["text"]
    assert fields["skills"]["extractedValue"] == ["Python", "SQL"]


def test_submit_without_identity(client):
    """Test that uploads need an operator identity."""
    response = client.post("/api/cv/jobs", json=_upload_body())

    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_REQUIRED"


def test_invalid_payload(client):
    """Test that schema errors map to INVALID_PAYLOAD."""
    body = _upload_body()
    del body["fileName"]

    response = client.post("/api/cv/jobs", json=body, headers=USER)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "message": "Die Anfrage ist unvollständig.",
        "code": "INVALID_PAYLOAD",
        "retryable": False,
    }


def test_quota_sets_retry_after_header():
    """Test that a denied upload carries a Retry-After header."""
    app = create_app(_services(AppSettings(daily_quota=1)))
    with TestClient(app) as client:
        client.post("/api/cv/jobs", json=_upload_body(), headers=USER)
        response = client.post("/api/cv/jobs", json=_upload_body(), headers=USER)

    assert response.status_code == 429
    assert response.json()["code"] == "DAILY_QUOTA_EXCEEDED"
    assert int(response.headers["Retry-After"]) > 0


def test_job_visibility_and_deletion(client):
    """Test that jobs are private to their owner and can be deleted."""
    job_id = client.post("/api/cv/jobs", json=_upload_body(), headers=USER).json()["jobId"]

    assert client.get(f"/api/cv/jobs/{job_id}", headers={"X-User-Id": "someone-else"}).status_code == 404
    assert [j["id"] for j in client.get("/api/cv/jobs", headers=USER).json()["jobs"]] == [job_id]

    assert client.delete(f"/api/cv/jobs/{job_id}", headers=USER).json() == {"success": True}
    assert client.get(f"/api/cv/jobs/{job_id}", headers=USER).status_code == 404


def test_correction_requires_identity(client):
    """Test that feedback writes without identity are rejected."""
    body = {"sourceContext": "Heimatort: Bern", "correctValue": "Schweiz", "correctField": "nationality"}

    assert client.post("/api/feedback/corrections", json=body).status_code == 401

    response = client.post("/api/feedback/corrections", json=body, headers=USER)
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["id"]


def test_correction_batch(client):
    """Test batch correction recording."""
    body = {
        "corrections": [
            {"sourceContext": "Anna Beispiel", "correctValue": "Anna", "correctField": "firstName"},
            {"sourceContext": "Tel 079", "correctValue": "+41791234567", "correctField": "phone"},
        ]
    }

    response = client.post("/api/feedback/corrections/batch", json=body, headers=USER)

    assert response.json() == {"success": True, "count": 2, "total": 2}


def test_segment_assignment_drives_suggestions(client):
    """Test that an assigned segment is suggested for the same text later."""
    client.post(
        "/api/feedback/segments",
        json={
            "segmentText": "Fahrausweis Kat. B",
            "detectedType": "credential",
            "assignedField": "driversLicense",
            "assignedValue": "B",
        },
        headers=USER,
    )

    response = client.post(
        "/api/feedback/suggestions",
        json={"originalText": "Fahrausweis Kat. B", "suggestedField": "workPermit", "confidence": 0.4},
    )

    suggestions = response.json()["suggestions"]
    assert [s["field"] for s in suggestions] == ["driversLicense", "workPermit"]
    assert suggestions[0]["source"] == "history"


def test_confirmations_update_accuracy(client):
    """Test that confirmed fields count as correct extractions."""
    client.post("/api/feedback/confirmations", json={"fields": ["email", "phone"]}, headers=USER)
    client.post(
        "/api/feedback/corrections",
        json={"sourceContext": "Tel 079", "correctValue": "+41791234567", "correctField": "phone"},
        headers=USER,
    )

    accuracy = client.get("/api/feedback/accuracy").json()

    assert accuracy["accuracies"] == {"email": 1.0, "phone": 0.5}
    assert accuracy["problematicFields"] == []


def test_tenant_synonym_validation(client):
    """Test that tenant synonyms must target profile form fields."""
    ok = client.post("/api/tenant/synonyms", json={"label": "Bürgerort", "targetField": "nationality"}, headers=USER)
    bad = client.post("/api/tenant/synonyms", json={"label": "Hobby", "targetField": "hobbies"}, headers=USER)
    alias = client.post("/api/tenant/skill-aliases", json={"alias": "k8s", "skillName": "Kubernetes"}, headers=USER)

    assert ok.status_code == 200
    assert bad.status_code == 400
    assert bad.json()["code"] == "INVALID_PAYLOAD"
    assert alias.json()["success"] is True


def test_health(client):
    """Test the health endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": True}
