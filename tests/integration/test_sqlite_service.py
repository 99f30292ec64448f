"""
Integration tests for RegistryService on the SQLite store.

Tests cover:
- End-to-end document scenario on disk
- Concurrent updates to one document
- Concurrent operations on different documents
- Atomicity of failed operations
"""

import asyncio
import tempfile
from pathlib import Path

import pytest

from docreg_server.config import ServerConfig, StorageBackend, StorageConfig
from docreg_server.engine import RegistryService
from docreg_server.errors import (
    InvalidParamsError,
    NotAuthorizedError,
    UnknownPermissionLevelError,
)
from docreg_server.models import PermissionLevel
from docreg_server.store import InMemoryStore, SqliteStore, create_store

ALICE = "user:alice"
BOB = "user:bob"
HASH = b"\xaa" * 32


class TestSqliteService:
    @pytest.fixture
    def data_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    @pytest.fixture
    def service(self, data_dir):
        store = SqliteStore(Path(data_dir) / "registry.db")
        store.initialize()
        service = RegistryService(store)
        yield service
        service.close()

    @pytest.mark.asyncio
    async def test_document_scenario(self, service):
        await service.add_document(ALICE, "d1", "Will.pdf", None, "pdf", "ipfs://Qm1", HASH, 1000)

        with pytest.raises(NotAuthorizedError):
            await service.update_document(
                BOB, "d1", "Will.pdf", None, "ipfs://Qm2", HASH, 1000
            )

        await service.grant_document_permission(ALICE, "d1", BOB, PermissionLevel.EDIT)
        version = await service.update_document(
            BOB, "d1", "Will.pdf", None, "ipfs://Qm2", HASH, 1000
        )
        assert version == 2

        with pytest.raises(UnknownPermissionLevelError):
            await service.grant_document_permission(ALICE, "d1", BOB, 7)
        assert await service.get_document_permission("d1", BOB) == PermissionLevel.EDIT

        await service.delete_document(ALICE, "d1")
        assert await service.get_document("d1") is None
        assert (await service.get_document_version("d1", 1)).change_notes == "Initial version"

    @pytest.mark.asyncio
    async def test_concurrent_updates_get_distinct_versions(self, service):
        await service.add_document(ALICE, "d1", "Doc", None, "txt", "ipfs://0", HASH, 1)

        versions = await asyncio.gather(
            *(
                service.update_document(ALICE, "d1", "Doc", None, f"ipfs://{i}", HASH, i)
                for i in range(10)
            )
        )

        assert sorted(versions) == list(range(2, 12))
        document = await service.get_document("d1")
        assert document.latest_version == 11
        history = await service.list_document_versions("d1")
        assert [v.version for v in history] == list(range(1, 12))

    @pytest.mark.asyncio
    async def test_concurrent_creates_of_different_documents(self, service):
        await asyncio.gather(
            *(
                service.add_document(ALICE, f"d{i}", "Doc", None, "txt", "ipfs://x", HASH, 1)
                for i in range(8)
            )
        )

        stats = await service.get_stats()
        assert stats["documents"] == 8
        assert stats["document_versions"] == 8

    @pytest.mark.asyncio
    async def test_timestamps_never_decrease(self, service):
        await service.add_document(ALICE, "d1", "Doc", None, "txt", "ipfs://0", HASH, 1)
        for i in range(5):
            await service.update_document(ALICE, "d1", "Doc", None, f"ipfs://{i}", HASH, 1)

        stamps = [v.updated_at for v in await service.list_document_versions("d1")]
        assert stamps == sorted(stamps)

    @pytest.mark.asyncio
    async def test_integers_beyond_column_range(self, service):
        """Values SQLite cannot bind are rejected or read as absent."""
        await service.create_collection(ALICE, "c1", "Docs")
        await service.add_document(ALICE, "d1", "Doc", None, "txt", "ipfs://0", HASH, 1)

        assert await service.get_document_version("d1", 2**64) is None
        with pytest.raises(InvalidParamsError):
            await service.list_collection_documents("c1", offset=2**64)
        with pytest.raises(InvalidParamsError):
            await service.update_document(ALICE, "d1", "Doc", None, "ipfs://1", HASH, 2**63)

        assert (await service.get_document("d1")).latest_version == 1


class TestCreateStore:
    def test_sqlite_backend(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config = ServerConfig(
                storage=StorageConfig(backend=StorageBackend.SQLITE, data_dir=tmpdir)
            )
            store = create_store(config)

            assert isinstance(store, SqliteStore)
            assert (Path(tmpdir) / "registry.db").exists()

    def test_memory_backend(self):
        config = ServerConfig(storage=StorageConfig(backend=StorageBackend.MEMORY))
        assert isinstance(create_store(config), InMemoryStore)
