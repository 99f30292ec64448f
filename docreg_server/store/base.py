"""
Base protocol and types for registry storage.

This module defines the RegistryStore protocol every backend implements,
and the StoreTransaction handle through which all table access happens.

Tables:
    collections             (collection_id)
    documents               (document_id)
    document_versions       (document_id, version)
    collection_memberships  (collection_id, document_id)
    collection_permissions  (collection_id, identity)
    document_permissions    (document_id, identity)

Invariants:
    - All reads and writes go through a transaction handle
    - A transaction commits every write or none of them
    - Resources held by a transaction are released on every exit path
    - The two permission tables are separate; nothing is inherited

How to change safely:
    - Protocol changes require updating all backends
    - Keep the memory backend behaviourally identical to SQLite
"""

from __future__ import annotations

from abc import abstractmethod
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..models import (
    Collection,
    CollectionMembership,
    Document,
    DocumentVersion,
    PermissionGrant,
    ResourceKind,
)

if TYPE_CHECKING:
    from ..config import ServerConfig

TABLE_NAMES = (
    "collections",
    "documents",
    "document_versions",
    "collection_memberships",
    "collection_permissions",
    "document_permissions",
)


class StoreError(Exception):
    """Base exception for storage operations."""
    pass


class DuplicateKeyError(StoreError):
    """Insert collided with an existing primary key."""
    pass


class ReadOnlyTransactionError(StoreError):
    """Write attempted inside a read-only transaction."""
    pass


@runtime_checkable
class StoreTransaction(Protocol):
    """Table access scoped to one atomic transaction."""

    # Collections

    @abstractmethod
    def get_collection(self, collection_id: str) -> Collection | None: ...

    @abstractmethod
    def insert_collection(self, collection: Collection) -> None:
        """Insert a new collection.

        Raises:
            DuplicateKeyError: If the id is already present
        """
        ...

    @abstractmethod
    def delete_collection(self, collection_id: str) -> bool: ...

    # Documents

    @abstractmethod
    def get_document(self, document_id: str) -> Document | None: ...

    @abstractmethod
    def insert_document(self, document: Document) -> None: ...

    @abstractmethod
    def replace_document(self, document: Document) -> None:
        """Overwrite the row for ``document.document_id``."""
        ...

    @abstractmethod
    def delete_document(self, document_id: str) -> bool: ...

    # Versions

    @abstractmethod
    def get_version(self, document_id: str, version: int) -> DocumentVersion | None: ...

    @abstractmethod
    def insert_version(self, version: DocumentVersion) -> None:
        """Append a version record. Existing versions are never replaced.

        Raises:
            DuplicateKeyError: If (document_id, version) already exists
        """
        ...

    @abstractmethod
    def list_versions(self, document_id: str) -> list[DocumentVersion]: ...

    # Memberships

    @abstractmethod
    def get_membership(
        self, collection_id: str, document_id: str
    ) -> CollectionMembership | None: ...

    @abstractmethod
    def insert_membership(self, membership: CollectionMembership) -> None: ...

    @abstractmethod
    def delete_membership(self, collection_id: str, document_id: str) -> bool: ...

    @abstractmethod
    def list_memberships(
        self, collection_id: str, limit: int, offset: int = 0
    ) -> list[CollectionMembership]:
        """Memberships of a collection ordered by (added_at, document_id)."""
        ...

    # Permission grants

    @abstractmethod
    def get_grant(
        self, kind: ResourceKind, resource_id: str, identity: str
    ) -> PermissionGrant | None: ...

    @abstractmethod
    def upsert_grant(self, grant: PermissionGrant) -> None: ...

    @abstractmethod
    def delete_grant(self, kind: ResourceKind, resource_id: str, identity: str) -> bool: ...

    # Introspection

    @abstractmethod
    def count_rows(self) -> dict[str, int]: ...


@runtime_checkable
class RegistryStore(Protocol):
    """Protocol for registry storage backends.

    Example:
        >>> store = InMemoryStore()
        >>> store.initialize()
        >>> with store.transaction() as txn:
        ...     txn.insert_collection(collection)
    """

    @abstractmethod
    def initialize(self) -> None:
        """Create tables if they do not exist."""
        ...

    @abstractmethod
    def transaction(self, write: bool = True) -> AbstractContextManager[StoreTransaction]:
        """Open an all-or-nothing transaction.

        The transaction commits when the block exits normally and rolls back
        when it raises; the exception is re-raised after rollback.

        Args:
            write: Whether the transaction may modify tables
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release backend resources."""
        ...


def create_store(config: ServerConfig) -> RegistryStore:
    """Factory function to create a store from configuration.

    Args:
        config: Server configuration

    Returns:
        Initialized RegistryStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import InMemoryStore
    from .sqlite import SqliteStore

    if config.storage.backend == StorageBackend.SQLITE:
        store: RegistryStore = SqliteStore(
            db_path=config.storage.db_path,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
        )
    elif config.storage.backend == StorageBackend.MEMORY:
        store = InMemoryStore()
    else:
        raise ValueError(f"Unsupported storage backend: {config.storage.backend}")

    store.initialize()
    return store
