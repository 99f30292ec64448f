"""
Collection registry.

Owns the collection lifecycle: nonexistent -> active -> deleted.

Invariants:
    - Any caller may create a collection and becomes its owner
    - Only the owner may delete; ADMIN grantees may not
    - Deletion removes the collection row only
"""

from __future__ import annotations

import logging

from ..clock import CallContext
from ..errors import AlreadyExistsError, CollectionNotFoundError
from ..models import Collection, ResourceKind
from ..store import StoreTransaction
from .permissions import BoundResource, PermissionEngine

logger = logging.getLogger(__name__)


class CollectionRegistry:
    """Create, read and delete collections."""

    def __init__(self, permissions: PermissionEngine) -> None:
        self.permissions = permissions

    def create(
        self,
        txn: StoreTransaction,
        ctx: CallContext,
        collection_id: str,
        name: str,
        description: str | None = None,
    ) -> Collection:
        """Create a collection owned by the caller.

        Raises:
            AlreadyExistsError: If ``collection_id`` is taken
        """
        if txn.get_collection(collection_id) is not None:
            raise AlreadyExistsError("collection", collection_id)

        collection = Collection(
            collection_id=collection_id,
            name=name,
            owner=ctx.caller,
            created_at=ctx.timestamp,
            description=description,
        )
        txn.insert_collection(collection)

        logger.debug(
            "Created collection",
            extra={"collection_id": collection_id, "owner": ctx.caller},
        )
        return collection

    def delete(self, txn: StoreTransaction, ctx: CallContext, collection_id: str) -> None:
        """Delete a collection. Memberships and grants are left in place.

        Raises:
            CollectionNotFoundError: If the collection does not exist
            NotAuthorizedError: If the caller is not the owner
        """
        resource = self.bind(txn, collection_id)
        self.permissions.require_owner(resource, ctx.caller, "delete")
        txn.delete_collection(collection_id)

        logger.debug(
            "Deleted collection",
            extra={"collection_id": collection_id, "caller": ctx.caller},
        )

    def get(self, txn: StoreTransaction, collection_id: str) -> Collection | None:
        return txn.get_collection(collection_id)

    def bind(self, txn: StoreTransaction, collection_id: str) -> BoundResource:
        """Load a collection for permission checks.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        resource = self.permissions.bind(txn, ResourceKind.COLLECTION, collection_id)
        if resource is None:
            raise CollectionNotFoundError(collection_id)
        return resource
