"""Request and response models for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..models import (
    Collection,
    CollectionMembership,
    Document,
    DocumentVersion,
    PermissionGrant,
)

# --- Requests ---


class CollectionCreateRequest(BaseModel):
    """Request to create a collection."""

    id: str = Field(..., description="Collection ID (max 36 chars)")
    name: str = Field(..., description="Collection name (max 64 chars)")
    description: str | None = Field(None, description="Optional description")


class DocumentCreateRequest(BaseModel):
    """Request to register a document."""

    id: str = Field(..., description="Document ID (max 36 chars)")
    title: str
    description: str | None = None
    file_type: str
    storage_location: str = Field(..., description="Reference into content storage")
    content_hash: str = Field(..., description="32-byte digest as 64 hex characters")
    size: int


class DocumentUpdateRequest(BaseModel):
    """Request to record a new version of a document."""

    title: str
    description: str | None = None
    storage_location: str
    content_hash: str = Field(..., description="32-byte digest as 64 hex characters")
    size: int
    change_notes: str | None = None


class GrantRequest(BaseModel):
    """Request to set a permission level (0=NONE, 1=VIEW, 2=EDIT, 3=ADMIN)."""

    level: int


# --- Responses ---


class CollectionResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    owner: str
    created_at: int

    @classmethod
    def from_record(cls, c: Collection) -> CollectionResponse:
        return cls(
            id=c.collection_id,
            name=c.name,
            description=c.description,
            owner=c.owner,
            created_at=c.created_at,
        )


class DocumentResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    file_type: str
    storage_location: str
    content_hash: str
    owner: str
    created_at: int
    updated_at: int
    size: int
    latest_version: int

    @classmethod
    def from_record(cls, d: Document) -> DocumentResponse:
        return cls(
            id=d.document_id,
            title=d.title,
            description=d.description,
            file_type=d.file_type,
            storage_location=d.storage_location,
            content_hash=d.content_hash.hex(),
            owner=d.owner,
            created_at=d.created_at,
            updated_at=d.updated_at,
            size=d.size,
            latest_version=d.latest_version,
        )


class VersionResponse(BaseModel):
    document_id: str
    version: int
    content_hash: str
    storage_location: str
    updated_at: int
    updated_by: str
    change_notes: str | None = None

    @classmethod
    def from_record(cls, v: DocumentVersion) -> VersionResponse:
        return cls(
            document_id=v.document_id,
            version=v.version,
            content_hash=v.content_hash.hex(),
            storage_location=v.storage_location,
            updated_at=v.updated_at,
            updated_by=v.updated_by,
            change_notes=v.change_notes,
        )


class UpdateResponse(BaseModel):
    id: str
    version: int


class MembershipResponse(BaseModel):
    collection_id: str
    document_id: str
    added_at: int

    @classmethod
    def from_record(cls, m: CollectionMembership) -> MembershipResponse:
        return cls(collection_id=m.collection_id, document_id=m.document_id, added_at=m.added_at)


class MembershipListResponse(BaseModel):
    collection_id: str
    items: list[MembershipResponse]
    offset: int
    limit: int


class PermissionResponse(BaseModel):
    resource_id: str
    identity: str
    level: int
    level_name: str

    @classmethod
    def from_grant(cls, g: PermissionGrant) -> PermissionResponse:
        return cls(
            resource_id=g.resource_id,
            identity=g.identity,
            level=int(g.level),
            level_name=g.level.name,
        )


class DocumentAccessResponse(BaseModel):
    document_id: str
    identity: str
    can_view: bool
    can_edit: bool


class CollectionAccessResponse(BaseModel):
    collection_id: str
    identity: str
    can_admin: bool
