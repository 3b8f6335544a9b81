"""API tests that run without PostgreSQL (stub DB session, offline remote)."""
import pytest
from httpx import AsyncClient

from tests.conftest import AUTH_HEADERS, AUTH_HEADERS_USER2, StubSession, make_document


# ---------------------------------------------------------------------------
# Root / health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_root_endpoint(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Docsight API"


@pytest.mark.asyncio
async def test_health_returns_200(client: AsyncClient):
    resp = await client.get("/api/health/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["remote_analysis"] == "disabled"
    assert "X-Process-Time" in resp.headers


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_analyze_text(client: AsyncClient):
    text = "Invoice from Acme. Amount due: $2,000 by 01/09/2024. Great service."
    resp = await client.post("/api/analysis/text", json={"text": text})

    assert resp.status_code == 200
    data = resp.json()
    assert set(data) == {"summary", "insights", "keyPoints", "sentiment"}
    assert data["summary"].startswith("This is an invoice document.")
    assert data["keyPoints"][0] == "💰 Amount: $2,000"
    assert data["sentiment"] == "positive"


@pytest.mark.asyncio
async def test_analyze_empty_text(client: AsyncClient):
    resp = await client.post("/api/analysis/text", json={"text": ""})
    assert resp.status_code == 200
    assert resp.json()["summary"] == "Document analysis completed."


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_chat_requires_auth_header(client: AsyncClient):
    resp = await client.post("/api/chat/start/1")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_chat_session_lifecycle(client: AsyncClient):
    resp = await client.post("/api/chat/start/1", headers=AUTH_HEADERS)
    assert resp.status_code == 201
    data = resp.json()
    session_id = data["session_id"]
    assert session_id == "test-user-1_1"
    assert data["document_title"] == "Invoice 42"
    assert [m["role"] for m in data["messages"]] == ["assistant"]

    resp = await client.post(
        f"/api/chat/message/{session_id}",
        json={"message": "When is the payment due?"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["reply"]["role"] == "assistant"
    assert data["reply"]["content"] == "The document mentions these dates: 15/08/2024."
    assert len(data["messages"]) == 3

    resp = await client.get(f"/api/chat/history/{session_id}", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert len(resp.json()["messages"]) == 3

    resp = await client.delete(f"/api/chat/{session_id}", headers=AUTH_HEADERS)
    assert resp.status_code == 204

    resp = await client.get(f"/api/chat/history/{session_id}", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_chat_session_is_private_to_its_user(client: AsyncClient):
    await client.post("/api/chat/start/1", headers=AUTH_HEADERS)
    await client.post(
        "/api/chat/message/test-user-1_1",
        json={"message": "When is the payment due?"},
        headers=AUTH_HEADERS,
    )

    resp = await client.get("/api/chat/history/test-user-1_1", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 404

    resp = await client.post(
        "/api/chat/message/test-user-1_1",
        json={"message": "What is the total?"},
        headers=AUTH_HEADERS_USER2,
    )
    assert resp.status_code == 404

    resp = await client.delete("/api/chat/test-user-1_1", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 404

    resp = await client.get("/api/chat/history/test-user-1_1", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert len(resp.json()["messages"]) == 3


@pytest.mark.asyncio
async def test_chat_history_requires_auth_header(client: AsyncClient):
    await client.post("/api/chat/start/1", headers=AUTH_HEADERS)
    resp = await client.get("/api/chat/history/test-user-1_1")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_chat_start_other_users_document(client: AsyncClient):
    resp = await client.post("/api/chat/start/1", headers=AUTH_HEADERS_USER2)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_chat_start_unknown_document(client: AsyncClient):
    resp = await client.post("/api/chat/start/999", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_chat_start_extracts_text_when_not_analysed(
    client: AsyncClient, stub_db: StubSession, tmp_path
):
    path = tmp_path / "notes.txt"
    path.write_text("Meeting moved to 03/04/2025.", encoding="utf-8")
    stub_db.documents[2] = make_document(
        id=2, title="Notes", filename="notes.txt", file_path=str(path), content_text=None
    )

    resp = await client.post("/api/chat/start/2", headers=AUTH_HEADERS)

    assert resp.status_code == 201
    assert stub_db.documents[2].content_text == "Meeting moved to 03/04/2025."
    assert stub_db.commits >= 1


@pytest.mark.asyncio
async def test_message_to_unknown_session(client: AsyncClient):
    resp = await client.post(
        "/api/chat/message/nope", json={"message": "hello"}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 404
    assert "not found" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_delete_unknown_session(client: AsyncClient):
    resp = await client.delete("/api/chat/nope", headers=AUTH_HEADERS)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_empty_message_rejected(client: AsyncClient):
    await client.post("/api/chat/start/1", headers=AUTH_HEADERS)
    resp = await client.post(
        "/api/chat/message/test-user-1_1", json={"message": ""}, headers=AUTH_HEADERS
    )
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Document upload validation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_upload_requires_auth_header(client: AsyncClient):
    resp = await client.post(
        "/api/documents/upload",
        files={"file": ("notes.txt", b"hello world", "text/plain")},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_upload_unsupported_type(client: AsyncClient):
    resp = await client.post(
        "/api/documents/upload",
        headers=AUTH_HEADERS,
        files={"file": ("sheet.xlsx", b"PK\x03\x04", "application/octet-stream")},
    )
    assert resp.status_code == 400
    assert "Unsupported file type" in resp.json()["detail"]
