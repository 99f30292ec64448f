"""
Membership manager: many-to-many links between collections and documents.

Authorization is deliberately asymmetric:
    - add needs EDIT on the document AND EDIT on the collection
    - remove needs EDIT on the document OR EDIT on the collection

Both operations are idempotent; repeating them succeeds without changes.
"""

from __future__ import annotations

import logging

from ..clock import CallContext
from ..errors import NotAuthorizedError
from ..models import CollectionMembership, PermissionLevel
from ..store import StoreTransaction
from .collections import CollectionRegistry
from .documents import DocumentRegistry

logger = logging.getLogger(__name__)


class MembershipManager:
    """Adds and removes documents from collections."""

    def __init__(self, collections: CollectionRegistry, documents: DocumentRegistry) -> None:
        self.collections = collections
        self.documents = documents
        self.permissions = collections.permissions

    def add(
        self,
        txn: StoreTransaction,
        ctx: CallContext,
        collection_id: str,
        document_id: str,
    ) -> CollectionMembership:
        """Link a document to a collection.

        Returns:
            The new membership, or the existing one if already linked

        Raises:
            CollectionNotFoundError: If the collection does not exist
            DocumentNotFoundError: If the document does not exist
            NotAuthorizedError: If EDIT is missing on either resource
        """
        collection = self.collections.bind(txn, collection_id)
        document = self.documents.bind(txn, document_id)
        self.permissions.require(document, ctx.caller, PermissionLevel.EDIT, "add to collection")
        self.permissions.require(collection, ctx.caller, PermissionLevel.EDIT, "add documents to")

        existing = txn.get_membership(collection_id, document_id)
        if existing is not None:
            return existing

        membership = CollectionMembership(
            collection_id=collection_id,
            document_id=document_id,
            added_at=ctx.timestamp,
        )
        txn.insert_membership(membership)

        logger.debug(
            "Added document to collection",
            extra={"collection_id": collection_id, "document_id": document_id},
        )
        return membership

    def remove(
        self,
        txn: StoreTransaction,
        ctx: CallContext,
        collection_id: str,
        document_id: str,
    ) -> bool:
        """Unlink a document from a collection.

        Returns:
            True if a membership was removed, False if there was none

        Raises:
            CollectionNotFoundError: If the collection does not exist
            DocumentNotFoundError: If the document does not exist
            NotAuthorizedError: If EDIT is missing on both resources
        """
        collection = self.collections.bind(txn, collection_id)
        document = self.documents.bind(txn, document_id)
        check = self.permissions.check
        if not (
            check(document, ctx.caller, PermissionLevel.EDIT)
            or check(collection, ctx.caller, PermissionLevel.EDIT)
        ):
            logger.info(
                "Permission denied",
                extra={
                    "caller": ctx.caller,
                    "collection_id": collection_id,
                    "document_id": document_id,
                    "action": "remove from collection",
                },
            )
            raise NotAuthorizedError(ctx.caller, document_id, "remove from collection")

        removed = txn.delete_membership(collection_id, document_id)
        if removed:
            logger.debug(
                "Removed document from collection",
                extra={"collection_id": collection_id, "document_id": document_id},
            )
        return removed

    def contains(self, txn: StoreTransaction, collection_id: str, document_id: str) -> bool:
        return txn.get_membership(collection_id, document_id) is not None

    def list_members(
        self,
        txn: StoreTransaction,
        collection_id: str,
        limit: int,
        offset: int = 0,
    ) -> list[CollectionMembership]:
        """List a collection's memberships in insertion order.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        self.collections.bind(txn, collection_id)
        return txn.list_memberships(collection_id, limit=limit, offset=offset)
