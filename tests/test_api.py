"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakeEmbedClient, FakeRAGClient, FakeWebClient, make_zip
from server.api_server import create_app
from server.core.AppServices import AppServices
from shared.models.faq import FAQEntry

HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Test client over fake backends and an in-memory database."""
    monkeypatch.setenv("APP_API_KEY", "test-key")
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("UPLOAD_MAX_TOTAL_BYTES", "5000")

    def factory(helper_config):
        return AppServices(helper_config, FakeRAGClient(), FakeEmbedClient(), FakeWebClient())

    with TestClient(create_app(factory)) as test_client:
        yield test_client


def upload(client, files, owner="rep-1", **form):
    return client.post("/upload", files=files, data={"owner_id": owner, **form}, headers=HEADERS)


class TestAuth:
    def test_missing_key(self, client):
        """Requests without X-API-Key are rejected."""
        response = client.post("/query", json={"query": "q", "owner_id": "rep-1"})
        assert response.status_code == 401

    def test_wrong_key(self, client):
        """A wrong key is rejected."""
        response = client.post("/query", json={"query": "q", "owner_id": "rep-1"}, headers={"X-API-Key": "nope"})
        assert response.status_code == 401


class TestUploadRoute:
    def test_upload_and_duplicate(self, client):
        """The second upload of the same bytes reports the first document."""
        first = upload(client, [("files", ("pricing.txt", b"Clover pricing 2.6%", "text/plain"))])
        second = upload(client, [("files", ("pricing copy.txt", b"Clover pricing 2.6%", "text/plain"))])
        assert first.status_code == 200
        assert first.json()["created"] == 1
        body = second.json()
        assert body["duplicates"] == 1
        assert body["outcomes"][0]["document"]["id"] == first.json()["outcomes"][0]["document"]["id"]

    def test_upload_archive(self, client):
        """Zip uploads come back with an archive summary."""
        data = make_zip({"processors/tsys/guide.txt": b"TSYS guide", "processors/fiserv.txt": b"Fiserv guide"})
        response = upload(client, [("files", ("kb.zip", data, "application/zip"))])
        outcome = response.json()["outcomes"][0]
        assert outcome["type"] == "archive"
        assert len(outcome["archive_summary"]["documents_created"]) == 2
        assert len(outcome["archive_summary"]["folders_created"]) == 2

    def test_request_too_large(self, client):
        """A request above UPLOAD_MAX_TOTAL_BYTES gets 413."""
        response = upload(client, [("files", ("big.txt", b"x" * 6000, "text/plain"))])
        assert response.status_code == 413


class TestQueryRoute:
    def test_faq_answer(self, client):
        """A curated FAQ entry answers the matching question."""
        services = client.app.state.services
        client.portal.call(services.faq_store.add, FAQEntry(
            question="What POS options work for archery shops?",
            answer="Quantic, Clover, HubWallet",
            category="pos",
        ))
        response = client.post("/query", json={"query": "archery POS options", "owner_id": "rep-1"}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["source"] == "faq"

    def test_document_answer(self, client):
        """An uploaded document answers a query on its exact text."""
        upload(client, [("files", ("hubwallet.txt", b"HubWallet supports recurring billing for gyms", "text/plain"))])
        response = client.post(
            "/query",
            json={"query": "HubWallet supports recurring billing for gyms", "owner_id": "rep-1"},
            headers=HEADERS,
        )
        body = response.json()
        assert body["source"] == "documents"
        assert body["results"][0]["citation"] == "hubwallet.txt"

    def test_invalid_sensitivity(self, client):
        """Sensitivity out of range is a validation error."""
        response = client.post("/query", json={"query": "q", "owner_id": "o", "sensitivity": 2}, headers=HEADERS)
        assert response.status_code == 422


class TestDocumentRoutes:
    def test_delete_unknown(self, client):
        """Deleting an unknown document is a 404."""
        assert client.delete("/documents/missing", headers=HEADERS).status_code == 404

    def test_delete_and_reindex(self, client):
        """Reindex counts chunks; deletion drops them and deactivates the row."""
        created = upload(client, [("files", ("notes.txt", b"merchant notes", "text/plain"))])
        doc_id = created.json()["outcomes"][0]["document"]["id"]

        reindex = client.post(f"/documents/{doc_id}/reindex", headers=HEADERS)
        assert reindex.json() == {"document_id": doc_id, "chunk_count": 1}

        deleted = client.delete(f"/documents/{doc_id}", headers=HEADERS)
        assert deleted.status_code == 200
        assert deleted.json()["document"]["is_active"] is False
        assert client.app.state.services.rag_client.points == {}

        assert client.post(f"/documents/{doc_id}/reindex", headers=HEADERS).status_code == 409

    def test_check_duplicate(self, client):
        """The pre-upload check reports an existing copy without storing anything."""
        upload(client, [("files", ("rates.txt", b"rate card", "text/plain"))])
        response = client.post(
            "/documents/check-duplicate",
            files={"file": ("rates (2).txt", b"rate card", "text/plain")},
            data={"owner_id": "rep-1"},
            headers=HEADERS,
        )
        body = response.json()
        assert body["is_duplicate"] is True
        assert body["matched_document"]["original_name"] == "rates.txt"
