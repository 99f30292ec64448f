"""
Integration tests for the HTTP API.

Runs the FastAPI app in-process over httpx's ASGI transport with an
injected in-memory service.

Tests cover:
- Actor header handling
- Error to status code mapping
- Document lifecycle over HTTP
- Collection membership and permission routes
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from docreg_server.api import Settings, create_app
from docreg_server.clock import ManualClock
from docreg_server.engine import RegistryService
from docreg_server.store import DuplicateKeyError, InMemoryStore

ALICE = {"X-Actor": "user:alice"}
BOB = {"X-Actor": "user:bob"}
HASH_HEX = "aa" * 32


@pytest.fixture
def service():
    store = InMemoryStore()
    store.initialize()
    return RegistryService(store, clock=ManualClock(start=1000), max_page_size=10)


@pytest_asyncio.fixture
async def client(service):
    app = create_app(service, Settings(default_page_size=2))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def document_body(document_id="d1", **overrides):
    body = {
        "id": document_id,
        "title": "Will.pdf",
        "file_type": "pdf",
        "storage_location": "ipfs://Qm1",
        "content_hash": HASH_HEX,
        "size": 1000,
    }
    body.update(overrides)
    return body


class TestHttpApi:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_missing_actor_is_401(self, client):
        response = await client.post("/api/v1/collections", json={"id": "c1", "name": "Docs"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_collection_and_conflict(self, client):
        body = {"id": "c1", "name": "Family Docs"}

        created = await client.post("/api/v1/collections", json=body, headers=ALICE)
        assert created.status_code == 201
        assert created.json()["owner"] == "user:alice"

        again = await client.post("/api/v1/collections", json=body, headers=ALICE)
        assert again.status_code == 409
        assert again.json()["error_code"] == "ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_get_missing_collection_is_404(self, client):
        response = await client.get("/api/v1/collections/nope")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_document_lifecycle(self, client):
        created = await client.post("/api/v1/documents", json=document_body(), headers=ALICE)
        assert created.status_code == 201
        assert created.json()["latest_version"] == 1
        assert created.json()["content_hash"] == HASH_HEX

        version = await client.get("/api/v1/documents/d1/versions/1")
        assert version.json()["change_notes"] == "Initial version"

        update = {
            "title": "Will v2.pdf",
            "storage_location": "ipfs://Qm2",
            "content_hash": "bb" * 32,
            "size": 1200,
            "change_notes": "Signed",
        }
        denied = await client.put("/api/v1/documents/d1", json=update, headers=BOB)
        assert denied.status_code == 403
        assert denied.json()["error_code"] == "NOT_AUTHORIZED"

        granted = await client.put(
            "/api/v1/documents/d1/permissions/user:bob", json={"level": 2}, headers=ALICE
        )
        assert granted.status_code == 200
        assert granted.json()["level_name"] == "EDIT"

        updated = await client.put("/api/v1/documents/d1", json=update, headers=BOB)
        assert updated.status_code == 200
        assert updated.json() == {"id": "d1", "version": 2}

        versions = await client.get("/api/v1/documents/d1/versions")
        assert [v["version"] for v in versions.json()] == [1, 2]

        deleted = await client.delete("/api/v1/documents/d1", headers=ALICE)
        assert deleted.status_code == 204
        assert (await client.get("/api/v1/documents/d1")).status_code == 404
        assert (await client.get("/api/v1/documents/d1/versions/1")).status_code == 200

    @pytest.mark.asyncio
    async def test_bad_hash_is_422(self, client):
        response = await client.post(
            "/api/v1/documents", json=document_body(content_hash="zz"), headers=ALICE
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_PARAMS"

        short = await client.post(
            "/api/v1/documents", json=document_body(content_hash="aa" * 31), headers=ALICE
        )
        assert short.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_level_is_422(self, client):
        await client.post("/api/v1/documents", json=document_body(), headers=ALICE)

        response = await client.put(
            "/api/v1/documents/d1/permissions/user:bob", json={"level": 7}, headers=ALICE
        )

        assert response.status_code == 422
        assert response.json()["error_code"] == "UNKNOWN_PERMISSION_LEVEL"

    @pytest.mark.asyncio
    async def test_grant_on_missing_document_is_404(self, client):
        response = await client.put(
            "/api/v1/documents/nope/permissions/user:bob", json={"level": 1}, headers=ALICE
        )
        assert response.status_code == 404
        assert response.json()["error_code"] == "DOCUMENT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_membership_routes(self, client):
        await client.post("/api/v1/collections", json={"id": "c1", "name": "Docs"}, headers=ALICE)
        for document_id in ("d1", "d2", "d3"):
            await client.post(
                "/api/v1/documents", json=document_body(document_id), headers=ALICE
            )
            added = await client.put(
                f"/api/v1/collections/c1/documents/{document_id}", headers=ALICE
            )
            assert added.status_code == 200

        listing = await client.get("/api/v1/collections/c1/documents")
        assert listing.status_code == 200
        assert listing.json()["limit"] == 2
        assert [m["document_id"] for m in listing.json()["items"]] == ["d1", "d2"]

        second_page = await client.get("/api/v1/collections/c1/documents?offset=2&limit=5")
        assert [m["document_id"] for m in second_page.json()["items"]] == ["d3"]

        removed = await client.delete("/api/v1/collections/c1/documents/d1", headers=ALICE)
        assert removed.status_code == 204
        again = await client.delete("/api/v1/collections/c1/documents/d1", headers=ALICE)
        assert again.status_code == 204

    @pytest.mark.asyncio
    async def test_access_and_permission_routes(self, client):
        await client.post("/api/v1/collections", json={"id": "c1", "name": "Docs"}, headers=ALICE)
        await client.put(
            "/api/v1/collections/c1/permissions/user:bob", json={"level": 3}, headers=ALICE
        )

        access = await client.get("/api/v1/collections/c1/access/user:bob")
        assert access.json()["can_admin"] is True

        level = await client.get("/api/v1/collections/c1/permissions/user:bob")
        assert level.json()["level"] == 3

        revoked = await client.delete(
            "/api/v1/collections/c1/permissions/user:bob", headers=ALICE
        )
        assert revoked.status_code == 204

        level = await client.get("/api/v1/collections/c1/permissions/user:bob")
        assert level.json()["level_name"] == "NONE"

        owner_doc_access = await client.get("/api/v1/documents/d9/access/user:alice")
        assert owner_doc_access.json() == {
            "document_id": "d9",
            "identity": "user:alice",
            "can_view": False,
            "can_edit": False,
        }

    @pytest.mark.asyncio
    async def test_stats(self, client):
        await client.post("/api/v1/documents", json=document_body(), headers=ALICE)

        stats = await client.get("/api/v1/stats")

        assert stats.json()["documents"] == 1
        assert stats.json()["document_versions"] == 1

    @pytest.mark.asyncio
    async def test_deleted_document_id_is_409(self, client):
        await client.post("/api/v1/documents", json=document_body(), headers=ALICE)
        await client.delete("/api/v1/documents/d1", headers=ALICE)

        again = await client.post("/api/v1/documents", json=document_body(), headers=BOB)

        assert again.status_code == 409
        assert again.json()["error_code"] == "ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_out_of_range_integers(self, client):
        created = await client.post(
            "/api/v1/documents", json=document_body(size=2**63), headers=ALICE
        )
        assert created.status_code == 422
        assert created.json()["error_code"] == "INVALID_PARAMS"

        await client.post("/api/v1/documents", json=document_body(), headers=ALICE)
        version = await client.get(f"/api/v1/documents/d1/versions/{2**64}")
        assert version.status_code == 404

    @pytest.mark.asyncio
    async def test_store_error_is_structured_500(self, client, service, monkeypatch):
        def broken_add(*args, **kwargs):
            raise DuplicateKeyError("documents: d1")

        monkeypatch.setattr(service.documents, "add", broken_add)

        response = await client.post("/api/v1/documents", json=document_body(), headers=ALICE)

        assert response.status_code == 500
        assert response.json() == {
            "error": "Storage error",
            "error_code": "STORE_ERROR",
            "details": {},
        }
