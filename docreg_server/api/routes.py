"""
API routes for the document registry.

Every mutating route reads the caller identity from the actor header
(X-Actor by default). Reads are unrestricted.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ..engine import RegistryService
from ..errors import InvalidParamsError
from ..models import PermissionGrant, ResourceKind
from .schemas import (
    CollectionAccessResponse,
    CollectionCreateRequest,
    CollectionResponse,
    DocumentAccessResponse,
    DocumentCreateRequest,
    DocumentResponse,
    DocumentUpdateRequest,
    GrantRequest,
    MembershipListResponse,
    MembershipResponse,
    PermissionResponse,
    UpdateResponse,
    VersionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Document Registry"])


# --- Dependencies ---


def get_service(request: Request) -> RegistryService:
    """Get registry service from app state."""
    return request.app.state.service


def get_actor(request: Request) -> str:
    """Get the authenticated caller identity from the actor header."""
    header = request.app.state.settings.actor_header
    actor = request.headers.get(header)
    if not actor:
        raise HTTPException(status_code=401, detail=f"{header} header is required")
    return actor


def decode_hash(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise InvalidParamsError("content_hash must be hex encoded", "content_hash")


# --- Collection Routes ---


@router.post("/collections", response_model=CollectionResponse, status_code=201)
async def create_collection(
    body: CollectionCreateRequest,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Create a collection owned by the caller."""
    collection = await service.create_collection(actor, body.id, body.name, body.description)
    return CollectionResponse.from_record(collection)


@router.get("/collections/{collection_id}", response_model=CollectionResponse)
async def get_collection(
    collection_id: str,
    service: RegistryService = Depends(get_service),
):
    collection = await service.get_collection(collection_id)
    if collection is None:
        raise HTTPException(status_code=404, detail=f"Collection {collection_id} not found")
    return CollectionResponse.from_record(collection)


@router.delete("/collections/{collection_id}", status_code=204)
async def delete_collection(
    collection_id: str,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """
    Delete a collection.

    Owner only. Memberships and grants referencing it are kept.
    """
    await service.delete_collection(actor, collection_id)
    return Response(status_code=204)


@router.get("/collections/{collection_id}/documents", response_model=MembershipListResponse)
async def list_collection_documents(
    request: Request,
    collection_id: str,
    offset: int = Query(0, ge=0, description="Pagination offset"),
    limit: int | None = Query(None, ge=1, description="Page size"),
    service: RegistryService = Depends(get_service),
):
    """List documents in a collection, oldest membership first."""
    if limit is None:
        limit = request.app.state.settings.default_page_size
    limit = min(limit, service.max_page_size)

    members = await service.list_collection_documents(collection_id, limit=limit, offset=offset)
    return MembershipListResponse(
        collection_id=collection_id,
        items=[MembershipResponse.from_record(m) for m in members],
        offset=offset,
        limit=limit,
    )


@router.put(
    "/collections/{collection_id}/documents/{document_id}",
    response_model=MembershipResponse,
)
async def add_document_to_collection(
    collection_id: str,
    document_id: str,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """
    Add a document to a collection.

    Requires EDIT on both the document and the collection. Idempotent.
    """
    membership = await service.add_document_to_collection(actor, collection_id, document_id)
    return MembershipResponse.from_record(membership)


@router.delete("/collections/{collection_id}/documents/{document_id}", status_code=204)
async def remove_document_from_collection(
    collection_id: str,
    document_id: str,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """
    Remove a document from a collection.

    Requires EDIT on either the document or the collection. Idempotent.
    """
    await service.remove_document_from_collection(actor, collection_id, document_id)
    return Response(status_code=204)


@router.put(
    "/collections/{collection_id}/permissions/{identity}",
    response_model=PermissionResponse,
)
async def grant_collection_permission(
    collection_id: str,
    identity: str,
    body: GrantRequest,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    grant = await service.grant_collection_permission(actor, collection_id, identity, body.level)
    return PermissionResponse.from_grant(grant)


@router.delete("/collections/{collection_id}/permissions/{identity}", status_code=204)
async def revoke_collection_permission(
    collection_id: str,
    identity: str,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    await service.revoke_collection_permission(actor, collection_id, identity)
    return Response(status_code=204)


@router.get(
    "/collections/{collection_id}/permissions/{identity}",
    response_model=PermissionResponse,
)
async def get_collection_permission(
    collection_id: str,
    identity: str,
    service: RegistryService = Depends(get_service),
):
    """Explicit grant held by ``identity`` (ownership is not reported)."""
    level = await service.get_collection_permission(collection_id, identity)
    return PermissionResponse.from_grant(
        PermissionGrant(ResourceKind.COLLECTION, collection_id, identity, level)
    )


@router.get("/collections/{collection_id}/access/{identity}", response_model=CollectionAccessResponse)
async def check_collection_access(
    collection_id: str,
    identity: str,
    service: RegistryService = Depends(get_service),
):
    return CollectionAccessResponse(
        collection_id=collection_id,
        identity=identity,
        can_admin=await service.can_admin_collection(collection_id, identity),
    )


# --- Document Routes ---


@router.post("/documents", response_model=DocumentResponse, status_code=201)
async def add_document(
    body: DocumentCreateRequest,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """Register a document; version 1 is recorded with it."""
    document = await service.add_document(
        actor,
        body.id,
        body.title,
        body.description,
        body.file_type,
        body.storage_location,
        decode_hash(body.content_hash),
        body.size,
    )
    return DocumentResponse.from_record(document)


@router.get("/documents/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    service: RegistryService = Depends(get_service),
):
    document = await service.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
    return DocumentResponse.from_record(document)


@router.put("/documents/{document_id}", response_model=UpdateResponse)
async def update_document(
    document_id: str,
    body: DocumentUpdateRequest,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    """
    Record new content for a document.

    Requires ownership or an EDIT grant. Returns the new version number.
    """
    version = await service.update_document(
        actor,
        document_id,
        body.title,
        body.description,
        body.storage_location,
        decode_hash(body.content_hash),
        body.size,
        body.change_notes,
    )
    return UpdateResponse(id=document_id, version=version)


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    await service.delete_document(actor, document_id)
    return Response(status_code=204)


@router.get("/documents/{document_id}/versions", response_model=list[VersionResponse])
async def list_document_versions(
    document_id: str,
    service: RegistryService = Depends(get_service),
):
    """All recorded versions, including those of deleted documents."""
    versions = await service.list_document_versions(document_id)
    return [VersionResponse.from_record(v) for v in versions]


@router.get("/documents/{document_id}/versions/{version}", response_model=VersionResponse)
async def get_document_version(
    document_id: str,
    version: int,
    service: RegistryService = Depends(get_service),
):
    record = await service.get_document_version(document_id, version)
    if record is None:
        raise HTTPException(
            status_code=404, detail=f"Version {version} of {document_id} not found"
        )
    return VersionResponse.from_record(record)


@router.put("/documents/{document_id}/permissions/{identity}", response_model=PermissionResponse)
async def grant_document_permission(
    document_id: str,
    identity: str,
    body: GrantRequest,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    grant = await service.grant_document_permission(actor, document_id, identity, body.level)
    return PermissionResponse.from_grant(grant)


@router.delete("/documents/{document_id}/permissions/{identity}", status_code=204)
async def revoke_document_permission(
    document_id: str,
    identity: str,
    service: RegistryService = Depends(get_service),
    actor: str = Depends(get_actor),
):
    await service.revoke_document_permission(actor, document_id, identity)
    return Response(status_code=204)


@router.get("/documents/{document_id}/permissions/{identity}", response_model=PermissionResponse)
async def get_document_permission(
    document_id: str,
    identity: str,
    service: RegistryService = Depends(get_service),
):
    level = await service.get_document_permission(document_id, identity)
    return PermissionResponse.from_grant(
        PermissionGrant(ResourceKind.DOCUMENT, document_id, identity, level)
    )


@router.get("/documents/{document_id}/access/{identity}", response_model=DocumentAccessResponse)
async def check_document_access(
    document_id: str,
    identity: str,
    service: RegistryService = Depends(get_service),
):
    return DocumentAccessResponse(
        document_id=document_id,
        identity=identity,
        can_view=await service.can_view_document(document_id, identity),
        can_edit=await service.can_edit_document(document_id, identity),
    )


# --- Introspection ---


@router.get("/stats")
async def get_stats(service: RegistryService = Depends(get_service)):
    """Row counts per table."""
    return await service.get_stats()
