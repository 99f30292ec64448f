"""
Document registry and version history.

Owns the document lifecycle and its append-only version log.

Version numbering:
    - add creates the document with latest_version = 1 and writes
      version 1 ("Initial version") in the same transaction
    - each update writes version latest_version + 1 and bumps the counter
    - versions are never rewritten and survive document deletion

Invariants:
    - latest_version equals the highest version row for the document
    - id, owner, created_at and file_type never change after creation
    - Update needs EDIT (or ownership); delete needs ownership
    - Deletion is terminal: a deleted id is never registered again

How to change safely:
    - Any new mutable field must be copied into DocumentVersion if it is
      part of the content reference
    - Keep the read-increment-write in a single transaction
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ..clock import CallContext
from ..errors import AlreadyExistsError, DocumentNotFoundError
from ..models import (
    INITIAL_VERSION_NOTES,
    MAX_STORED_INT,
    Document,
    DocumentVersion,
    PermissionLevel,
    ResourceKind,
)
from ..store import StoreTransaction
from .permissions import BoundResource, PermissionEngine

logger = logging.getLogger(__name__)


class DocumentRegistry:
    """Create, update, read and delete documents and their versions."""

    def __init__(self, permissions: PermissionEngine) -> None:
        self.permissions = permissions

    def add(
        self,
        txn: StoreTransaction,
        ctx: CallContext,
        document_id: str,
        title: str,
        description: str | None,
        file_type: str,
        storage_location: str,
        content_hash: bytes,
        size: int,
    ) -> Document:
        """Create a document and its first version.

        Args:
            txn: Open write transaction
            ctx: Caller and timestamp
            document_id: New document identifier
            title: Document title
            description: Optional description
            file_type: File type tag
            storage_location: Reference into external storage
            content_hash: 32-byte content digest
            size: Content size in bytes

        Returns:
            The created Document

        Raises:
            AlreadyExistsError: If ``document_id`` is live or was deleted
        """
        # Deleted ids keep their versions and grants, so they are never reissued
        if txn.get_document(document_id) is not None or (
            txn.get_version(document_id, 1) is not None
        ):
            raise AlreadyExistsError("document", document_id)

        document = Document(
            document_id=document_id,
            title=title,
            description=description,
            file_type=file_type,
            storage_location=storage_location,
            content_hash=content_hash,
            owner=ctx.caller,
            created_at=ctx.timestamp,
            updated_at=ctx.timestamp,
            size=size,
            latest_version=1,
        )
        txn.insert_document(document)
        txn.insert_version(
            DocumentVersion(
                document_id=document_id,
                version=1,
                content_hash=content_hash,
                storage_location=storage_location,
                updated_at=ctx.timestamp,
                updated_by=ctx.caller,
                change_notes=INITIAL_VERSION_NOTES,
            )
        )

        logger.debug(
            "Created document",
            extra={"document_id": document_id, "owner": ctx.caller},
        )
        return document

    def update(
        self,
        txn: StoreTransaction,
        ctx: CallContext,
        document_id: str,
        title: str,
        description: str | None,
        storage_location: str,
        content_hash: bytes,
        size: int,
        change_notes: str | None = None,
    ) -> int:
        """Replace the document's mutable fields and append a version.

        Returns:
            The new version number

        Raises:
            DocumentNotFoundError: If the document does not exist
            NotAuthorizedError: If the caller lacks EDIT and is not the owner
        """
        resource = self.bind(txn, document_id)
        self.permissions.require(resource, ctx.caller, PermissionLevel.EDIT, "update")

        current = txn.get_document(document_id)
        new_version = current.latest_version + 1

        txn.replace_document(
            replace(
                current,
                title=title,
                description=description,
                storage_location=storage_location,
                content_hash=content_hash,
                updated_at=ctx.timestamp,
                size=size,
                latest_version=new_version,
            )
        )
        txn.insert_version(
            DocumentVersion(
                document_id=document_id,
                version=new_version,
                content_hash=content_hash,
                storage_location=storage_location,
                updated_at=ctx.timestamp,
                updated_by=ctx.caller,
                change_notes=change_notes,
            )
        )

        logger.debug(
            "Updated document",
            extra={"document_id": document_id, "version": new_version, "caller": ctx.caller},
        )
        return new_version

    def delete(self, txn: StoreTransaction, ctx: CallContext, document_id: str) -> None:
        """Delete the document row. Versions, memberships and grants remain.

        Raises:
            DocumentNotFoundError: If the document does not exist
            NotAuthorizedError: If the caller is not the owner
        """
        resource = self.bind(txn, document_id)
        self.permissions.require_owner(resource, ctx.caller, "delete")
        txn.delete_document(document_id)

        logger.debug(
            "Deleted document",
            extra={"document_id": document_id, "caller": ctx.caller},
        )

    def get(self, txn: StoreTransaction, document_id: str) -> Document | None:
        return txn.get_document(document_id)

    def get_version(
        self, txn: StoreTransaction, document_id: str, version: int
    ) -> DocumentVersion | None:
        if version < 1 or version > MAX_STORED_INT:
            return None
        return txn.get_version(document_id, version)

    def list_versions(self, txn: StoreTransaction, document_id: str) -> list[DocumentVersion]:
        return txn.list_versions(document_id)

    def bind(self, txn: StoreTransaction, document_id: str) -> BoundResource:
        """Load a document for permission checks.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        resource = self.permissions.bind(txn, ResourceKind.DOCUMENT, document_id)
        if resource is None:
            raise DocumentNotFoundError(document_id)
        return resource
