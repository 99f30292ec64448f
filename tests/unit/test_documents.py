"""
Unit tests for document operations.

Tests cover:
- Registration with an initial version
- Permission-gated updates and version numbering
- Owner-only deletion, leaving versions behind
- Version reads
"""

import tempfile
from pathlib import Path

import pytest

from docreg_server.clock import ManualClock
from docreg_server.engine import RegistryService
from docreg_server.errors import (
    AlreadyExistsError,
    DocumentNotFoundError,
    InvalidParamsError,
    NotAuthorizedError,
)
from docreg_server.models import INITIAL_VERSION_NOTES, PermissionLevel
from docreg_server.store import InMemoryStore, SqliteStore

ALICE = "user:alice"
BOB = "user:bob"
HASH_V1 = b"\xaa" * 32
HASH_V2 = b"\xbb" * 32


class TestDocuments:
    @pytest.fixture
    def clock(self):
        return ManualClock(start=1000)

    @pytest.fixture
    def service(self, clock):
        store = InMemoryStore()
        store.initialize()
        return RegistryService(store, clock=clock)

    async def add_will(self, service):
        return await service.add_document(
            ALICE, "d1", "Will.pdf", None, "pdf", "ipfs://Qm1", HASH_V1, 1000
        )

    async def update_will(self, service, caller, notes=None):
        return await service.update_document(
            caller, "d1", "Will v2.pdf", "Signed", "ipfs://Qm2", HASH_V2, 1200, notes
        )

    @pytest.mark.asyncio
    async def test_add_document_creates_version_one(self, service):
        document = await self.add_will(service)

        assert document.owner == ALICE
        assert document.latest_version == 1
        assert document.created_at == document.updated_at == 1000

        fetched = await service.get_document("d1")
        assert fetched == document

        version = await service.get_document_version("d1", 1)
        assert version.change_notes == INITIAL_VERSION_NOTES
        assert version.content_hash == HASH_V1
        assert version.storage_location == "ipfs://Qm1"
        assert version.updated_by == ALICE

    @pytest.mark.asyncio
    async def test_duplicate_document_rejected(self, service):
        await self.add_will(service)

        with pytest.raises(AlreadyExistsError):
            await self.add_will(service)

        assert len(await service.list_document_versions("d1")) == 1

    @pytest.mark.asyncio
    async def test_update_without_permission_leaves_state(self, service):
        """Non-owner without a grant cannot update."""
        original = await self.add_will(service)

        with pytest.raises(NotAuthorizedError):
            await self.update_will(service, BOB)

        assert await service.get_document("d1") == original
        assert await service.get_document_version("d1", 2) is None

    @pytest.mark.asyncio
    async def test_view_grant_is_not_enough_to_update(self, service):
        await self.add_will(service)
        await service.grant_document_permission(ALICE, "d1", BOB, PermissionLevel.VIEW)

        with pytest.raises(NotAuthorizedError):
            await self.update_will(service, BOB)

    @pytest.mark.asyncio
    async def test_update_with_edit_grant(self, service, clock):
        await self.add_will(service)
        await service.grant_document_permission(ALICE, "d1", BOB, PermissionLevel.EDIT)
        clock.set(2000)

        version = await self.update_will(service, BOB, notes="Witness signatures")

        assert version == 2
        document = await service.get_document("d1")
        assert document.latest_version == 2
        assert document.title == "Will v2.pdf"
        assert document.content_hash == HASH_V2
        assert document.size == 1200
        assert document.owner == ALICE
        assert document.created_at == 1000
        assert document.updated_at == 2000

        record = await service.get_document_version("d1", 2)
        assert record.updated_by == BOB
        assert record.change_notes == "Witness signatures"
        assert record.updated_at == 2000

    @pytest.mark.asyncio
    async def test_versions_are_sequential(self, service):
        await self.add_will(service)

        versions = [await self.update_will(service, ALICE) for _ in range(3)]

        assert versions == [2, 3, 4]
        history = await service.list_document_versions("d1")
        assert [v.version for v in history] == [1, 2, 3, 4]
        assert history[0].content_hash == HASH_V1

    @pytest.mark.asyncio
    async def test_update_missing_document(self, service):
        with pytest.raises(DocumentNotFoundError):
            await self.update_will(service, ALICE)

    @pytest.mark.asyncio
    async def test_delete_owner_only(self, service):
        await self.add_will(service)
        await service.grant_document_permission(ALICE, "d1", BOB, PermissionLevel.ADMIN)

        with pytest.raises(NotAuthorizedError):
            await service.delete_document(BOB, "d1")

        assert await service.get_document("d1") is not None

    @pytest.mark.asyncio
    async def test_delete_keeps_versions(self, service):
        """Version records outlive the document."""
        await self.add_will(service)

        await service.delete_document(ALICE, "d1")

        assert await service.get_document("d1") is None
        orphan = await service.get_document_version("d1", 1)
        assert orphan is not None
        assert orphan.change_notes == INITIAL_VERSION_NOTES

    @pytest.mark.asyncio
    async def test_delete_missing(self, service):
        with pytest.raises(DocumentNotFoundError):
            await service.delete_document(ALICE, "d1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("version", [0, -1, 99, 2**64])
    async def test_get_version_out_of_range(self, service, version):
        await self.add_will(service)
        assert await service.get_document_version("d1", version) is None

    @pytest.mark.asyncio
    async def test_reads_of_missing_document_return_empty(self, service):
        assert await service.get_document("ghost") is None
        assert await service.list_document_versions("ghost") == []
        assert not await service.can_view_document("ghost", ALICE)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"content_hash": b"\x00" * 31},
            {"size": -1},
            {"file_type": "x" * 17},
            {"title": "t" * 129},
            {"storage_location": "s" * 257},
        ],
    )
    async def test_add_document_bounds(self, service, overrides):
        params = dict(
            title="Will.pdf",
            file_type="pdf",
            storage_location="ipfs://Qm1",
            content_hash=HASH_V1,
            size=1000,
        )
        params.update(overrides)

        with pytest.raises(InvalidParamsError):
            await service.add_document(
                ALICE,
                "d1",
                params["title"],
                None,
                params["file_type"],
                params["storage_location"],
                params["content_hash"],
                params["size"],
            )

        assert await service.get_document("d1") is None

    @pytest.mark.asyncio
    async def test_update_change_notes_bound(self, service):
        await self.add_will(service)

        with pytest.raises(InvalidParamsError):
            await self.update_will(service, ALICE, notes="n" * 257)

        assert (await service.get_document("d1")).latest_version == 1

    @pytest.mark.asyncio
    async def test_edit_grant_then_revoke(self, service):
        await self.add_will(service)
        await service.grant_document_permission(ALICE, "d1", BOB, PermissionLevel.EDIT)
        assert await service.can_edit_document("d1", BOB)

        await service.revoke_document_permission(ALICE, "d1", BOB)

        assert not await service.can_edit_document("d1", BOB)
        with pytest.raises(NotAuthorizedError):
            await self.update_will(service, BOB)


class TestDeletedDocumentIds:
    """Deleted ids stay reserved on every store backend."""

    @pytest.fixture(params=["memory", "sqlite"])
    def service(self, request):
        if request.param == "memory":
            store = InMemoryStore()
            store.initialize()
            yield RegistryService(store, clock=ManualClock(start=1000))
            return
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SqliteStore(Path(tmpdir) / "registry.db", wal_mode=False)
            store.initialize()
            service = RegistryService(store, clock=ManualClock(start=1000))
            yield service
            service.close()

    @pytest.mark.asyncio
    async def test_re_adding_deleted_id_is_rejected(self, service):
        await service.add_document(ALICE, "d1", "Will.pdf", None, "pdf", "ipfs://Qm1", HASH_V1, 1)
        await service.delete_document(ALICE, "d1")

        with pytest.raises(AlreadyExistsError):
            await service.add_document(BOB, "d1", "Other", None, "txt", "ipfs://Qm2", HASH_V2, 2)

        assert await service.get_document("d1") is None
        history = await service.list_document_versions("d1")
        assert len(history) == 1
        assert history[0].storage_location == "ipfs://Qm1"

    @pytest.mark.asyncio
    async def test_oversized_values_are_rejected(self, service):
        with pytest.raises(InvalidParamsError):
            await service.add_document(
                ALICE, "d1", "Big", None, "bin", "ipfs://Qm1", HASH_V1, 2**63
            )
        assert await service.get_document("d1") is None

        await service.add_document(ALICE, "d1", "Big", None, "bin", "ipfs://Qm1", HASH_V1, 1)
        assert await service.get_document_version("d1", 2**64) is None
        assert await service.get_document_version("d1", 2**63) is None
