"""
Registry service: the public operation surface.

Every operation follows the same shape:
    1. validate inputs (no store access)
    2. take the per-resource lock(s)
    3. read identity and one timestamp from the clock
    4. run the engine step inside one store transaction (worker thread)
    5. return the result, or raise; a raise rolls the transaction back

Invariants:
    - One operation = one store transaction
    - Same-resource operations are serialized; others run in parallel
    - Reads take no locks and never raise for missing resources

How to change safely:
    - New operations must go through _write()/_read() to keep atomicity
    - Keep validation ahead of the lock so bad input never waits
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from ..clock import CallContext, LogicalClock, MonotonicClock
from ..errors import InvalidParamsError
from ..models import (
    MAX_CHANGE_NOTES_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_FILE_TYPE_LENGTH,
    MAX_NAME_LENGTH,
    MAX_STORAGE_LOCATION_LENGTH,
    MAX_STORED_INT,
    MAX_TITLE_LENGTH,
    Collection,
    CollectionMembership,
    Document,
    DocumentVersion,
    PermissionGrant,
    PermissionLevel,
    ResourceKind,
)
from ..store import RegistryStore, StoreTransaction
from .admin import PermissionAdmin
from .collections import CollectionRegistry
from .documents import DocumentRegistry
from .locks import ResourceLocks, lock_key
from .membership import MembershipManager
from .permissions import PermissionEngine
from .validation import (
    check_content_hash,
    check_id,
    check_identity,
    check_size,
    check_text,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_PAGE_SIZE = 500


class RegistryService:
    """Permission-gated document registry.

    Attributes:
        store: Storage backend
        clock: Logical timestamp source
        permissions: Permission engine
        collections: Collection registry
        documents: Document registry
        memberships: Membership manager
        admin: Permission administration

    Example:
        >>> service = RegistryService(InMemoryStore())
        >>> await service.create_collection("user:alice", "c1", "Family Docs")
        >>> await service.can_admin_collection("c1", "user:alice")
        True
    """

    def __init__(
        self,
        store: RegistryStore,
        clock: LogicalClock | None = None,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ) -> None:
        self.store = store
        self.clock = clock or MonotonicClock()
        self.max_page_size = max_page_size

        self.permissions = PermissionEngine()
        self.collections = CollectionRegistry(self.permissions)
        self.documents = DocumentRegistry(self.permissions)
        self.memberships = MembershipManager(self.collections, self.documents)
        self.admin = PermissionAdmin(self.permissions)

        self._locks = ResourceLocks()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _context(self, caller: str) -> CallContext:
        return CallContext.capture(caller, self.clock)

    def _run(self, write: bool, fn: Callable[[StoreTransaction], T]) -> T:
        with self.store.transaction(write=write) as txn:
            return fn(txn)

    async def _write(
        self,
        caller: str,
        keys: list[tuple[str, str]],
        step: Callable[[StoreTransaction, CallContext], T],
    ) -> T:
        check_identity(caller, "caller")
        async with self._locks.hold(*keys):
            ctx = self._context(caller)
            return await asyncio.to_thread(self._run, True, lambda txn: step(txn, ctx))

    async def _read(self, fn: Callable[[StoreTransaction], T]) -> T:
        return await asyncio.to_thread(self._run, False, fn)

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(
        self,
        caller: str,
        collection_id: str,
        name: str,
        description: str | None = None,
    ) -> Collection:
        """Create a collection owned by ``caller``.

        Raises:
            InvalidParamsError: If an input is out of bounds
            AlreadyExistsError: If the id is taken
        """
        check_id(collection_id, "collection_id")
        check_text(name, "name", MAX_NAME_LENGTH)
        check_text(description, "description", MAX_DESCRIPTION_LENGTH, optional=True)

        return await self._write(
            caller,
            [lock_key(ResourceKind.COLLECTION, collection_id)],
            lambda txn, ctx: self.collections.create(txn, ctx, collection_id, name, description),
        )

    async def delete_collection(self, caller: str, collection_id: str) -> None:
        """Delete a collection (owner only, no cascade)."""
        check_id(collection_id, "collection_id")
        await self._write(
            caller,
            [lock_key(ResourceKind.COLLECTION, collection_id)],
            lambda txn, ctx: self.collections.delete(txn, ctx, collection_id),
        )

    async def get_collection(self, collection_id: str) -> Collection | None:
        return await self._read(lambda txn: self.collections.get(txn, collection_id))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def add_document(
        self,
        caller: str,
        document_id: str,
        title: str,
        description: str | None,
        file_type: str,
        storage_location: str,
        content_hash: bytes,
        size: int,
    ) -> Document:
        """Register a new document and its version 1.

        Raises:
            InvalidParamsError: If an input is out of bounds
            AlreadyExistsError: If the id is taken
        """
        check_id(document_id, "document_id")
        check_text(title, "title", MAX_TITLE_LENGTH)
        check_text(description, "description", MAX_DESCRIPTION_LENGTH, optional=True)
        check_text(file_type, "file_type", MAX_FILE_TYPE_LENGTH)
        check_text(storage_location, "storage_location", MAX_STORAGE_LOCATION_LENGTH)
        content_hash = check_content_hash(content_hash)
        check_size(size)

        return await self._write(
            caller,
            [lock_key(ResourceKind.DOCUMENT, document_id)],
            lambda txn, ctx: self.documents.add(
                txn,
                ctx,
                document_id,
                title,
                description,
                file_type,
                storage_location,
                content_hash,
                size,
            ),
        )

    async def update_document(
        self,
        caller: str,
        document_id: str,
        title: str,
        description: str | None,
        storage_location: str,
        content_hash: bytes,
        size: int,
        change_notes: str | None = None,
    ) -> int:
        """Record new content for a document.

        Returns:
            The new version number

        Raises:
            InvalidParamsError: If an input is out of bounds
            DocumentNotFoundError: If the document does not exist
            NotAuthorizedError: If the caller lacks EDIT and is not the owner
        """
        check_id(document_id, "document_id")
        check_text(title, "title", MAX_TITLE_LENGTH)
        check_text(description, "description", MAX_DESCRIPTION_LENGTH, optional=True)
        check_text(storage_location, "storage_location", MAX_STORAGE_LOCATION_LENGTH)
        content_hash = check_content_hash(content_hash)
        check_size(size)
        check_text(change_notes, "change_notes", MAX_CHANGE_NOTES_LENGTH, optional=True)

        return await self._write(
            caller,
            [lock_key(ResourceKind.DOCUMENT, document_id)],
            lambda txn, ctx: self.documents.update(
                txn,
                ctx,
                document_id,
                title,
                description,
                storage_location,
                content_hash,
                size,
                change_notes,
            ),
        )

    async def delete_document(self, caller: str, document_id: str) -> None:
        """Delete a document (owner only, no cascade)."""
        check_id(document_id, "document_id")
        await self._write(
            caller,
            [lock_key(ResourceKind.DOCUMENT, document_id)],
            lambda txn, ctx: self.documents.delete(txn, ctx, document_id),
        )

    async def get_document(self, document_id: str) -> Document | None:
        return await self._read(lambda txn: self.documents.get(txn, document_id))

    async def get_document_version(
        self, document_id: str, version: int
    ) -> DocumentVersion | None:
        return await self._read(lambda txn: self.documents.get_version(txn, document_id, version))

    async def list_document_versions(self, document_id: str) -> list[DocumentVersion]:
        return await self._read(lambda txn: self.documents.list_versions(txn, document_id))

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    async def add_document_to_collection(
        self, caller: str, collection_id: str, document_id: str
    ) -> CollectionMembership:
        """Link a document to a collection (idempotent)."""
        check_id(collection_id, "collection_id")
        check_id(document_id, "document_id")
        return await self._write(
            caller,
            [
                lock_key(ResourceKind.COLLECTION, collection_id),
                lock_key(ResourceKind.DOCUMENT, document_id),
            ],
            lambda txn, ctx: self.memberships.add(txn, ctx, collection_id, document_id),
        )

    async def remove_document_from_collection(
        self, caller: str, collection_id: str, document_id: str
    ) -> bool:
        """Unlink a document from a collection (idempotent).

        Returns:
            True if a membership was removed
        """
        check_id(collection_id, "collection_id")
        check_id(document_id, "document_id")
        return await self._write(
            caller,
            [
                lock_key(ResourceKind.COLLECTION, collection_id),
                lock_key(ResourceKind.DOCUMENT, document_id),
            ],
            lambda txn, ctx: self.memberships.remove(txn, ctx, collection_id, document_id),
        )

    async def is_document_in_collection(self, collection_id: str, document_id: str) -> bool:
        return await self._read(
            lambda txn: self.memberships.contains(txn, collection_id, document_id)
        )

    async def list_collection_documents(
        self,
        collection_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[CollectionMembership]:
        """List memberships of a collection, oldest first.

        Args:
            collection_id: Collection identifier
            limit: Page size, capped at max_page_size
            offset: Number of memberships to skip

        Raises:
            InvalidParamsError: If limit or offset is out of range
            CollectionNotFoundError: If the collection does not exist
        """
        if limit is None:
            limit = self.max_page_size
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidParamsError("limit must be a positive integer", "limit")
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise InvalidParamsError("offset must be a non-negative integer", "offset")
        if offset > MAX_STORED_INT:
            raise InvalidParamsError(f"offset exceeds {MAX_STORED_INT}", "offset")
        limit = min(limit, self.max_page_size)

        return await self._read(
            lambda txn: self.memberships.list_members(txn, collection_id, limit, offset)
        )

    # ------------------------------------------------------------------
    # Permission administration
    # ------------------------------------------------------------------

    async def _grant(
        self, caller: str, kind: ResourceKind, resource_id: str, identity: str, level: Any
    ) -> PermissionGrant:
        check_id(resource_id, f"{kind.value}_id")
        check_identity(identity)
        return await self._write(
            caller,
            [lock_key(kind, resource_id)],
            lambda txn, ctx: self.admin.grant(txn, ctx, kind, resource_id, identity, level),
        )

    async def _revoke(
        self, caller: str, kind: ResourceKind, resource_id: str, identity: str
    ) -> bool:
        check_id(resource_id, f"{kind.value}_id")
        check_identity(identity)
        return await self._write(
            caller,
            [lock_key(kind, resource_id)],
            lambda txn, ctx: self.admin.revoke(txn, ctx, kind, resource_id, identity),
        )

    async def grant_document_permission(
        self, caller: str, document_id: str, identity: str, level: Any
    ) -> PermissionGrant:
        """Set ``identity``'s level on a document (owner only).

        Raises:
            DocumentNotFoundError: If the document does not exist
            NotAuthorizedError: If the caller is not the owner
            UnknownPermissionLevelError: If level is outside [0, 3]
        """
        return await self._grant(caller, ResourceKind.DOCUMENT, document_id, identity, level)

    async def grant_collection_permission(
        self, caller: str, collection_id: str, identity: str, level: Any
    ) -> PermissionGrant:
        """Set ``identity``'s level on a collection (owner only)."""
        return await self._grant(caller, ResourceKind.COLLECTION, collection_id, identity, level)

    async def revoke_document_permission(
        self, caller: str, document_id: str, identity: str
    ) -> bool:
        return await self._revoke(caller, ResourceKind.DOCUMENT, document_id, identity)

    async def revoke_collection_permission(
        self, caller: str, collection_id: str, identity: str
    ) -> bool:
        return await self._revoke(caller, ResourceKind.COLLECTION, collection_id, identity)

    async def get_document_permission(self, document_id: str, identity: str) -> PermissionLevel:
        return await self._read(
            lambda txn: self.admin.get_level(txn, ResourceKind.DOCUMENT, document_id, identity)
        )

    async def get_collection_permission(
        self, collection_id: str, identity: str
    ) -> PermissionLevel:
        return await self._read(
            lambda txn: self.admin.get_level(txn, ResourceKind.COLLECTION, collection_id, identity)
        )

    # ------------------------------------------------------------------
    # Permission checks
    # ------------------------------------------------------------------

    async def has_permission(
        self,
        kind: ResourceKind,
        resource_id: str,
        identity: str,
        required: PermissionLevel,
    ) -> bool:
        return await self._read(
            lambda txn: self.permissions.has_permission(txn, kind, resource_id, identity, required)
        )

    async def can_view_document(self, document_id: str, identity: str) -> bool:
        return await self.has_permission(
            ResourceKind.DOCUMENT, document_id, identity, PermissionLevel.VIEW
        )

    async def can_edit_document(self, document_id: str, identity: str) -> bool:
        return await self.has_permission(
            ResourceKind.DOCUMENT, document_id, identity, PermissionLevel.EDIT
        )

    async def can_admin_collection(self, collection_id: str, identity: str) -> bool:
        return await self.has_permission(
            ResourceKind.COLLECTION, collection_id, identity, PermissionLevel.ADMIN
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def get_stats(self) -> dict[str, int]:
        """Row counts per table."""
        return await self._read(lambda txn: txn.count_rows())

    def close(self) -> None:
        self.store.close()
        logger.info("Registry service closed")
