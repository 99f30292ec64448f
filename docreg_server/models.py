"""
Data model for the document registry.

Records mirror the six storage tables one-to-one:
- Collection, Document, DocumentVersion, CollectionMembership
- PermissionGrant (collection-scoped and document-scoped)

Invariants:
    - Records are plain values; the store never hands out live references
    - DocumentVersion is frozen, versions are never rewritten
    - Ownership is a field on the resource, never a PermissionGrant row
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

MAX_ID_LENGTH = 36
MAX_NAME_LENGTH = 64
MAX_TITLE_LENGTH = 128
MAX_DESCRIPTION_LENGTH = 256
MAX_FILE_TYPE_LENGTH = 16
MAX_STORAGE_LOCATION_LENGTH = 256
MAX_CHANGE_NOTES_LENGTH = 256
CONTENT_HASH_SIZE = 32

# Largest integer a storage column can hold (SQLite INTEGER is signed 64-bit)
MAX_STORED_INT = 2**63 - 1

INITIAL_VERSION_NOTES = "Initial version"


class PermissionLevel(IntEnum):
    """Totally ordered permission levels.

    A grant satisfies a check when ``grant >= required``.
    """

    NONE = 0
    VIEW = 1
    EDIT = 2
    ADMIN = 3


class ResourceKind(Enum):
    """The two kinds of permission-checked resources."""

    COLLECTION = "collection"
    DOCUMENT = "document"


@dataclass
class Collection:
    """A named grouping of documents.

    Attributes:
        collection_id: Unique, immutable identifier
        name: Display name
        owner: Identity that created the collection
        created_at: Logical timestamp of creation
        description: Optional free text
    """

    collection_id: str
    name: str
    owner: str
    created_at: int
    description: str | None = None


@dataclass
class Document:
    """Current metadata of a document.

    Attributes:
        document_id: Unique, immutable identifier
        title: Display title
        file_type: Short file type tag (e.g. "pdf")
        storage_location: Opaque reference into external storage
        content_hash: 32-byte digest of the current content
        owner: Identity that created the document
        created_at: Logical timestamp of creation
        updated_at: Logical timestamp of the last update
        size: Content size in bytes
        latest_version: Highest version number recorded for this document
        description: Optional free text
    """

    document_id: str
    title: str
    file_type: str
    storage_location: str
    content_hash: bytes
    owner: str
    created_at: int
    updated_at: int
    size: int
    latest_version: int
    description: str | None = None


@dataclass(frozen=True)
class DocumentVersion:
    """Immutable snapshot of a document's content reference."""

    document_id: str
    version: int
    content_hash: bytes
    storage_location: str
    updated_at: int
    updated_by: str
    change_notes: str | None = None


@dataclass(frozen=True)
class CollectionMembership:
    """Association of a document with a collection."""

    collection_id: str
    document_id: str
    added_at: int


@dataclass(frozen=True)
class PermissionGrant:
    """Explicit permission level held by an identity on a resource."""

    kind: ResourceKind
    resource_id: str
    identity: str
    level: PermissionLevel
