"""
In-memory registry store.

This module provides a dictionary-backed store for:
- Unit tests
- Local development without a data directory
- Embedding the registry in a single process

Invariants:
    - All data is lost on process exit
    - One transaction at a time (re-entrant lock held for the whole block)
    - Rollback replays an undo log, restoring every touched key
    - Records are copied on the way in and out; callers never share state

How to change safely:
    - Keep behaviour identical to SqliteStore (ordering, duplicate handling)
    - Every write path must append to the undo log before mutating
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from ..models import (
    Collection,
    CollectionMembership,
    Document,
    DocumentVersion,
    PermissionGrant,
    PermissionLevel,
    ResourceKind,
)
from .base import DuplicateKeyError, ReadOnlyTransactionError

logger = logging.getLogger(__name__)

_MISSING = object()


class _Tables:
    """Raw table storage."""

    def __init__(self) -> None:
        self.collections: dict[str, Collection] = {}
        self.documents: dict[str, Document] = {}
        self.document_versions: dict[tuple[str, int], DocumentVersion] = {}
        self.collection_memberships: dict[tuple[str, str], CollectionMembership] = {}
        self.collection_permissions: dict[tuple[str, str], PermissionLevel] = {}
        self.document_permissions: dict[tuple[str, str], PermissionLevel] = {}

    def grants(self, kind: ResourceKind) -> dict[tuple[str, str], PermissionLevel]:
        if kind is ResourceKind.COLLECTION:
            return self.collection_permissions
        return self.document_permissions


class InMemoryTransaction:
    """Transaction over the in-memory tables with an undo log."""

    def __init__(self, tables: _Tables, write: bool) -> None:
        self._tables = tables
        self._write = write
        self._undo: list[tuple[dict, Any, Any]] = []

    def _set(self, table: dict, key: Any, value: Any) -> None:
        self._check_writable()
        self._undo.append((table, key, table.get(key, _MISSING)))
        table[key] = value

    def _pop(self, table: dict, key: Any) -> bool:
        self._check_writable()
        if key not in table:
            return False
        self._undo.append((table, key, table[key]))
        del table[key]
        return True

    def _check_writable(self) -> None:
        if not self._write:
            raise ReadOnlyTransactionError("Write attempted in read-only transaction")

    def rollback(self) -> None:
        for table, key, previous in reversed(self._undo):
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous
        self._undo.clear()

    # Collections

    def get_collection(self, collection_id: str) -> Collection | None:
        row = self._tables.collections.get(collection_id)
        return replace(row) if row else None

    def insert_collection(self, collection: Collection) -> None:
        if collection.collection_id in self._tables.collections:
            raise DuplicateKeyError(f"collections: {collection.collection_id}")
        self._set(self._tables.collections, collection.collection_id, replace(collection))

    def delete_collection(self, collection_id: str) -> bool:
        return self._pop(self._tables.collections, collection_id)

    # Documents

    def get_document(self, document_id: str) -> Document | None:
        row = self._tables.documents.get(document_id)
        return replace(row) if row else None

    def insert_document(self, document: Document) -> None:
        if document.document_id in self._tables.documents:
            raise DuplicateKeyError(f"documents: {document.document_id}")
        self._set(self._tables.documents, document.document_id, replace(document))

    def replace_document(self, document: Document) -> None:
        self._set(self._tables.documents, document.document_id, replace(document))

    def delete_document(self, document_id: str) -> bool:
        return self._pop(self._tables.documents, document_id)

    # Versions

    def get_version(self, document_id: str, version: int) -> DocumentVersion | None:
        return self._tables.document_versions.get((document_id, version))

    def insert_version(self, version: DocumentVersion) -> None:
        key = (version.document_id, version.version)
        if key in self._tables.document_versions:
            raise DuplicateKeyError(f"document_versions: {key}")
        self._set(self._tables.document_versions, key, version)

    def list_versions(self, document_id: str) -> list[DocumentVersion]:
        versions = [
            v for (doc_id, _), v in self._tables.document_versions.items() if doc_id == document_id
        ]
        return sorted(versions, key=lambda v: v.version)

    # Memberships

    def get_membership(self, collection_id: str, document_id: str) -> CollectionMembership | None:
        return self._tables.collection_memberships.get((collection_id, document_id))

    def insert_membership(self, membership: CollectionMembership) -> None:
        key = (membership.collection_id, membership.document_id)
        if key in self._tables.collection_memberships:
            raise DuplicateKeyError(f"collection_memberships: {key}")
        self._set(self._tables.collection_memberships, key, membership)

    def delete_membership(self, collection_id: str, document_id: str) -> bool:
        return self._pop(self._tables.collection_memberships, (collection_id, document_id))

    def list_memberships(
        self, collection_id: str, limit: int, offset: int = 0
    ) -> list[CollectionMembership]:
        members = [
            m
            for (coll_id, _), m in self._tables.collection_memberships.items()
            if coll_id == collection_id
        ]
        members.sort(key=lambda m: (m.added_at, m.document_id))
        return members[offset : offset + limit]

    # Permission grants

    def get_grant(
        self, kind: ResourceKind, resource_id: str, identity: str
    ) -> PermissionGrant | None:
        level = self._tables.grants(kind).get((resource_id, identity))
        if level is None:
            return None
        return PermissionGrant(kind=kind, resource_id=resource_id, identity=identity, level=level)

    def upsert_grant(self, grant: PermissionGrant) -> None:
        self._set(
            self._tables.grants(grant.kind),
            (grant.resource_id, grant.identity),
            PermissionLevel(grant.level),
        )

    def delete_grant(self, kind: ResourceKind, resource_id: str, identity: str) -> bool:
        return self._pop(self._tables.grants(kind), (resource_id, identity))

    def count_rows(self) -> dict[str, int]:
        t = self._tables
        return {
            "collections": len(t.collections),
            "documents": len(t.documents),
            "document_versions": len(t.document_versions),
            "collection_memberships": len(t.collection_memberships),
            "collection_permissions": len(t.collection_permissions),
            "document_permissions": len(t.document_permissions),
        }


class InMemoryStore:
    """Dictionary-backed implementation of RegistryStore.

    Thread safety:
        A re-entrant lock is held for the duration of each transaction,
        so transactions are fully serialized.

    Example:
        >>> store = InMemoryStore()
        >>> store.initialize()
        >>> with store.transaction(write=False) as txn:
        ...     txn.get_document("d1") is None
        True
    """

    def __init__(self) -> None:
        self._tables = _Tables()
        self._lock = threading.RLock()

    def initialize(self) -> None:
        logger.debug("InMemoryStore initialized")

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[InMemoryTransaction]:
        with self._lock:
            txn = InMemoryTransaction(self._tables, write)
            try:
                yield txn
            except BaseException:
                txn.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            self._tables = _Tables()
        logger.debug("InMemoryStore closed")
