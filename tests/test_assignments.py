"""Tests for the assignment generation and job endpoints."""
import asyncio
import base64
import io

import pytest
from docx import Document
from httpx import AsyncClient

from tests.conftest import FakeTextGenerator

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _payload(**overrides) -> dict:
    body = {
        "name": "Ada Obi",
        "matric": "2021/ABC-123",
        "department": "Computer Science",
        "courseCode": "CSC401",
        "courseTitle": "Software Engineering",
        "lecturerInCharge": "Dr. Bello",
        "numberOfPages": 1,
        "question": "Discuss the impact of agile methods on software quality in Nigeria.",
        "fileType": "docx",
    }
    body.update(overrides)
    return body


async def _wait_for_job(client: AsyncClient, job_id: str, timeout: float = 15.0):
    """Poll GET /jobs/{id} until the job is terminal; returns (body, progress values)."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    seen = []
    while True:
        resp = await client.get(f"/api/assignments/jobs/{job_id}")
        assert resp.status_code == 200
        data = resp.json()
        seen.append(data["progress"])
        if data["status"] in ("completed", "failed"):
            return data, seen
        if loop.time() > deadline:
            pytest.fail(f"job {job_id} still {data['status']} after {timeout}s")
        await asyncio.sleep(0.05)


# ── Synchronous path ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_generate_small_request_returns_docx(client: AsyncClient):
    resp = await client.post("/api/assignments/generate", json=_payload())

    assert resp.status_code == 200
    assert resp.headers["content-type"] == DOCX_MIME
    assert resp.headers["content-disposition"] == 'attachment; filename="assignment_2021_ABC_123.docx"'

    doc = Document(io.BytesIO(resp.content))
    texts = [p.text for p in doc.paragraphs]
    assert "Name: Ada Obi" in texts
    assert "Introduction" in texts
    assert "Conclusion" in texts


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "file_type, extension, mime",
    [("pdf", "pdf", "application/pdf"), ("txt", "txt", "text/plain"), ("doc", "docx", DOCX_MIME)],
)
async def test_generate_other_formats(client: AsyncClient, file_type, extension, mime):
    resp = await client.post("/api/assignments/generate", json=_payload(fileType=file_type))

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith(mime)
    assert f'filename="assignment_2021_ABC_123.{extension}"' in resp.headers["content-disposition"]


@pytest.mark.asyncio
async def test_generate_json_returns_clean_text(client: AsyncClient):
    resp = await client.post("/api/assignments/generate-json", json=_payload(numberOfPages=2))

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert "#" not in data["assignment"]
    assert data["assignment"].startswith("Introduction")
    assert data["wordCount"] >= 900
    assert data["pages"] == -(-data["wordCount"] // 500)
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_unsupported_file_type_is_400(client: AsyncClient, generator: FakeTextGenerator):
    resp = await client.post("/api/assignments/generate", json=_payload(fileType="rtf"))
    assert resp.status_code == 400
    assert "rtf" in resp.json()["detail"]
    assert generator.calls == 0


@pytest.mark.asyncio
async def test_invalid_request_is_422(client: AsyncClient):
    resp = await client.post(
        "/api/assignments/generate", json=_payload(name="R2D2", numberOfPages=0)
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_generation_failure_is_502(client: AsyncClient, generator: FakeTextGenerator):
    generator.fail_on_call = 1
    resp = await client.post("/api/assignments/generate-json", json=_payload())
    assert resp.status_code == 502
    assert "model overloaded" in resp.json()["detail"]


# ── Background jobs ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_large_request_runs_as_job(client: AsyncClient):
    resp = await client.post("/api/assignments/generate", json=_payload(numberOfPages=4))

    assert resp.status_code == 202
    created = resp.json()
    assert created["status"] == "pending"
    assert created["targetWordCount"] == 2000
    job_id = created["jobId"]

    data, seen = await _wait_for_job(client, job_id)
    assert data["status"] == "completed"
    assert data["progress"] == 100
    assert seen == sorted(seen)
    assert data["error"] is None

    result = data["result"]
    assert result["fileName"] == "assignment_2021_ABC_123.docx"
    assert result["mimeType"] == DOCX_MIME
    assert result["targetWordCount"] == 2000
    assert result["finalWordCount"] >= 1800
    assert base64.b64decode(result["buffer"])[:2] == b"PK"

    download = await client.get(f"/api/assignments/jobs/{job_id}/download")
    assert download.status_code == 200
    assert download.headers["content-type"] == DOCX_MIME
    assert download.content == base64.b64decode(result["buffer"])


@pytest.mark.asyncio
async def test_explicit_word_count_above_limit_runs_as_job(client: AsyncClient):
    resp = await client.post(
        "/api/assignments/generate-json", json=_payload(numberOfPages=1, wordCount=2000)
    )
    assert resp.status_code == 202
    data, _ = await _wait_for_job(client, resp.json()["jobId"])
    assert data["status"] == "completed"


@pytest.mark.asyncio
async def test_failed_job_reports_error(client: AsyncClient, generator: FakeTextGenerator):
    generator.fail_on_call = 2
    resp = await client.post("/api/assignments/generate", json=_payload(numberOfPages=5))
    assert resp.status_code == 202
    job_id = resp.json()["jobId"]

    data, _ = await _wait_for_job(client, job_id)
    assert data["status"] == "failed"
    assert data["error"] == "model overloaded"
    assert data["result"] is None
    assert data["progress"] < 100

    download = await client.get(f"/api/assignments/jobs/{job_id}/download")
    assert download.status_code == 409


@pytest.mark.asyncio
async def test_unknown_job_is_404(client: AsyncClient):
    resp = await client.get("/api/assignments/jobs/does-not-exist")
    assert resp.status_code == 404

    resp = await client.get("/api/assignments/jobs/does-not-exist/download")
    assert resp.status_code == 404


# ── Info ──────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_info(client: AsyncClient):
    resp = await client.get("/api/assignments/info")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Assignment Engine API"
    assert set(data["supported_file_types"]) == {"doc", "docx", "pdf", "txt"}
