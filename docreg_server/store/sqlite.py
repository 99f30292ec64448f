"""
SQLite registry store.

This module keeps the six registry tables in a single SQLite database file.

Invariants:
    - All operations are atomic (one SQLite transaction per block)
    - Write transactions start with BEGIN IMMEDIATE, so writers are serialized
    - No foreign keys: deleting a document or collection leaves its versions,
      memberships and grants in place
    - Connections are opened per transaction and always closed

How to change safely:
    - Schema migrations must be backward compatible
    - Bump SCHEMA_VERSION and add an idempotent migration step
    - Use transactions for all write operations

Table schema:
    collections:
        - collection_id TEXT PRIMARY KEY
        - name TEXT
        - description TEXT NULL
        - owner TEXT
        - created_at INTEGER

    documents:
        - document_id TEXT PRIMARY KEY
        - title, description, file_type, storage_location TEXT
        - content_hash BLOB (32 bytes)
        - owner TEXT
        - created_at, updated_at, size, latest_version INTEGER

    document_versions:
        - document_id TEXT, version INTEGER
        - content_hash BLOB, storage_location TEXT
        - updated_at INTEGER, updated_by TEXT, change_notes TEXT NULL
        - PRIMARY KEY (document_id, version)

    collection_memberships:
        - collection_id TEXT, document_id TEXT, added_at INTEGER
        - PRIMARY KEY (collection_id, document_id)

    collection_permissions / document_permissions:
        - <resource>_id TEXT, identity TEXT, permission_level INTEGER (0..3)
        - PRIMARY KEY (<resource>_id, identity)
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..models import (
    Collection,
    CollectionMembership,
    Document,
    DocumentVersion,
    PermissionGrant,
    PermissionLevel,
    ResourceKind,
)
from .base import TABLE_NAMES, DuplicateKeyError, ReadOnlyTransactionError

logger = logging.getLogger(__name__)

# Resource kind -> (table, key column)
_GRANT_TABLES = {
    ResourceKind.COLLECTION: ("collection_permissions", "collection_id"),
    ResourceKind.DOCUMENT: ("document_permissions", "document_id"),
}


def _collection_from_row(row: sqlite3.Row) -> Collection:
    return Collection(
        collection_id=row["collection_id"],
        name=row["name"],
        owner=row["owner"],
        created_at=row["created_at"],
        description=row["description"],
    )


def _document_from_row(row: sqlite3.Row) -> Document:
    return Document(
        document_id=row["document_id"],
        title=row["title"],
        description=row["description"],
        file_type=row["file_type"],
        storage_location=row["storage_location"],
        content_hash=bytes(row["content_hash"]),
        owner=row["owner"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        size=row["size"],
        latest_version=row["latest_version"],
    )


def _version_from_row(row: sqlite3.Row) -> DocumentVersion:
    return DocumentVersion(
        document_id=row["document_id"],
        version=row["version"],
        content_hash=bytes(row["content_hash"]),
        storage_location=row["storage_location"],
        updated_at=row["updated_at"],
        updated_by=row["updated_by"],
        change_notes=row["change_notes"],
    )


def _membership_from_row(row: sqlite3.Row) -> CollectionMembership:
    return CollectionMembership(
        collection_id=row["collection_id"],
        document_id=row["document_id"],
        added_at=row["added_at"],
    )


class SqliteTransaction:
    """Table access bound to one open SQLite transaction."""

    def __init__(self, conn: sqlite3.Connection, write: bool) -> None:
        self._conn = conn
        self._write = write

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        return self._conn.execute(sql, params)

    def _modify(self, sql: str, params: tuple, table: str) -> sqlite3.Cursor:
        if not self._write:
            raise ReadOnlyTransactionError(f"Write to {table} in read-only transaction")
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(f"{table}: {e}") from e

    # Collections

    def get_collection(self, collection_id: str) -> Collection | None:
        row = self._execute(
            "SELECT * FROM collections WHERE collection_id = ?", (collection_id,)
        ).fetchone()
        return _collection_from_row(row) if row else None

    def insert_collection(self, collection: Collection) -> None:
        self._modify(
            """
            INSERT INTO collections (collection_id, name, description, owner, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                collection.collection_id,
                collection.name,
                collection.description,
                collection.owner,
                collection.created_at,
            ),
            "collections",
        )

    def delete_collection(self, collection_id: str) -> bool:
        cursor = self._modify(
            "DELETE FROM collections WHERE collection_id = ?", (collection_id,), "collections"
        )
        return cursor.rowcount > 0

    # Documents

    def get_document(self, document_id: str) -> Document | None:
        row = self._execute(
            "SELECT * FROM documents WHERE document_id = ?", (document_id,)
        ).fetchone()
        return _document_from_row(row) if row else None

    def insert_document(self, document: Document) -> None:
        self._modify(
            """
            INSERT INTO documents (document_id, title, description, file_type,
                                   storage_location, content_hash, owner,
                                   created_at, updated_at, size, latest_version)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                document.document_id,
                document.title,
                document.description,
                document.file_type,
                document.storage_location,
                document.content_hash,
                document.owner,
                document.created_at,
                document.updated_at,
                document.size,
                document.latest_version,
            ),
            "documents",
        )

    def replace_document(self, document: Document) -> None:
        self._modify(
            """
            UPDATE documents SET title = ?, description = ?, file_type = ?,
                                 storage_location = ?, content_hash = ?,
                                 updated_at = ?, size = ?, latest_version = ?
            WHERE document_id = ?
            """,
            (
                document.title,
                document.description,
                document.file_type,
                document.storage_location,
                document.content_hash,
                document.updated_at,
                document.size,
                document.latest_version,
                document.document_id,
            ),
            "documents",
        )

    def delete_document(self, document_id: str) -> bool:
        cursor = self._modify(
            "DELETE FROM documents WHERE document_id = ?", (document_id,), "documents"
        )
        return cursor.rowcount > 0

    # Versions

    def get_version(self, document_id: str, version: int) -> DocumentVersion | None:
        row = self._execute(
            "SELECT * FROM document_versions WHERE document_id = ? AND version = ?",
            (document_id, version),
        ).fetchone()
        return _version_from_row(row) if row else None

    def insert_version(self, version: DocumentVersion) -> None:
        self._modify(
            """
            INSERT INTO document_versions (document_id, version, content_hash,
                                           storage_location, updated_at, updated_by,
                                           change_notes)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                version.document_id,
                version.version,
                version.content_hash,
                version.storage_location,
                version.updated_at,
                version.updated_by,
                version.change_notes,
            ),
            "document_versions",
        )

    def list_versions(self, document_id: str) -> list[DocumentVersion]:
        cursor = self._execute(
            "SELECT * FROM document_versions WHERE document_id = ? ORDER BY version",
            (document_id,),
        )
        return [_version_from_row(row) for row in cursor.fetchall()]

    # Memberships

    def get_membership(self, collection_id: str, document_id: str) -> CollectionMembership | None:
        row = self._execute(
            """
            SELECT * FROM collection_memberships
            WHERE collection_id = ? AND document_id = ?
            """,
            (collection_id, document_id),
        ).fetchone()
        return _membership_from_row(row) if row else None

    def insert_membership(self, membership: CollectionMembership) -> None:
        self._modify(
            """
            INSERT INTO collection_memberships (collection_id, document_id, added_at)
            VALUES (?, ?, ?)
            """,
            (membership.collection_id, membership.document_id, membership.added_at),
            "collection_memberships",
        )

    def delete_membership(self, collection_id: str, document_id: str) -> bool:
        cursor = self._modify(
            "DELETE FROM collection_memberships WHERE collection_id = ? AND document_id = ?",
            (collection_id, document_id),
            "collection_memberships",
        )
        return cursor.rowcount > 0

    def list_memberships(
        self, collection_id: str, limit: int, offset: int = 0
    ) -> list[CollectionMembership]:
        cursor = self._execute(
            """
            SELECT * FROM collection_memberships
            WHERE collection_id = ?
            ORDER BY added_at, document_id
            LIMIT ? OFFSET ?
            """,
            (collection_id, limit, offset),
        )
        return [_membership_from_row(row) for row in cursor.fetchall()]

    # Permission grants

    def get_grant(
        self, kind: ResourceKind, resource_id: str, identity: str
    ) -> PermissionGrant | None:
        table, key = _GRANT_TABLES[kind]
        row = self._execute(
            f"SELECT permission_level FROM {table} WHERE {key} = ? AND identity = ?",
            (resource_id, identity),
        ).fetchone()
        if not row:
            return None
        return PermissionGrant(
            kind=kind,
            resource_id=resource_id,
            identity=identity,
            level=PermissionLevel(row["permission_level"]),
        )

    def upsert_grant(self, grant: PermissionGrant) -> None:
        table, key = _GRANT_TABLES[grant.kind]
        self._modify(
            f"""
            INSERT INTO {table} ({key}, identity, permission_level)
            VALUES (?, ?, ?)
            ON CONFLICT ({key}, identity) DO UPDATE SET permission_level = excluded.permission_level
            """,
            (grant.resource_id, grant.identity, int(grant.level)),
            table,
        )

    def delete_grant(self, kind: ResourceKind, resource_id: str, identity: str) -> bool:
        table, key = _GRANT_TABLES[kind]
        cursor = self._modify(
            f"DELETE FROM {table} WHERE {key} = ? AND identity = ?",
            (resource_id, identity),
            table,
        )
        return cursor.rowcount > 0

    def count_rows(self) -> dict[str, int]:
        return {
            table: self._execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in TABLE_NAMES
        }


class SqliteStore:
    """Single-file SQLite implementation of RegistryStore.

    Thread safety:
        Each transaction opens its own connection. SQLite serializes
        writers via BEGIN IMMEDIATE and the busy timeout.

    Example:
        >>> store = SqliteStore("/var/lib/docreg/registry.db")
        >>> store.initialize()
        >>> with store.transaction() as txn:
        ...     txn.insert_collection(collection)
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the SQLite store.

        Args:
            db_path: Path to the database file
            wal_mode: Enable SQLite WAL journal mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(f"""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS collections (
                    collection_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT,
                    owner TEXT NOT NULL,
                    created_at INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS documents (
                    document_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    file_type TEXT NOT NULL,
                    storage_location TEXT NOT NULL,
                    content_hash BLOB NOT NULL,
                    owner TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    updated_at INTEGER NOT NULL,
                    size INTEGER NOT NULL CHECK (size >= 0),
                    latest_version INTEGER NOT NULL CHECK (latest_version >= 1)
                );

                CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner);

                CREATE TABLE IF NOT EXISTS document_versions (
                    document_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    content_hash BLOB NOT NULL,
                    storage_location TEXT NOT NULL,
                    updated_at INTEGER NOT NULL,
                    updated_by TEXT NOT NULL,
                    change_notes TEXT,
                    PRIMARY KEY (document_id, version)
                );

                CREATE TABLE IF NOT EXISTS collection_memberships (
                    collection_id TEXT NOT NULL,
                    document_id TEXT NOT NULL,
                    added_at INTEGER NOT NULL,
                    PRIMARY KEY (collection_id, document_id)
                );

                CREATE INDEX IF NOT EXISTS idx_memberships_order
                    ON collection_memberships(collection_id, added_at, document_id);

                CREATE TABLE IF NOT EXISTS collection_permissions (
                    collection_id TEXT NOT NULL,
                    identity TEXT NOT NULL,
                    permission_level INTEGER NOT NULL CHECK (permission_level BETWEEN 0 AND 3),
                    PRIMARY KEY (collection_id, identity)
                );

                CREATE TABLE IF NOT EXISTS document_permissions (
                    document_id TEXT NOT NULL,
                    identity TEXT NOT NULL,
                    permission_level INTEGER NOT NULL CHECK (permission_level BETWEEN 0 AND 3),
                    PRIMARY KEY (document_id, identity)
                );

                INSERT OR IGNORE INTO schema_version (version, applied_at)
                VALUES ({self.SCHEMA_VERSION}, strftime('%s', 'now') * 1000);
            """)
        logger.info("Initialized registry database", extra={"db_path": str(self.db_path)})

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[SqliteTransaction]:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield SqliteTransaction(conn, write)
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

    def close(self) -> None:
        # Connections are per-transaction; nothing is held between calls.
        logger.debug("SqliteStore closed", extra={"db_path": str(self.db_path)})
