"""
Permission engine for the document registry.

This module answers one question: does an identity hold at least a given
level on a collection or document?

Evaluation order:
    1. Resource missing           -> False
    2. Identity is the owner      -> True (owner bypass, any level)
    3. No explicit grant          -> False
    4. Otherwise                  -> grant.level >= required

Invariants:
    - Checks are pure reads and are re-evaluated on every call
    - Ownership is never stored as a grant; it always wins
    - Levels are a total order: passing EDIT implies passing VIEW
    - Collection grants never apply to documents, and vice versa

How to change safely:
    - New resource kinds only need a loader in _LOADERS
    - Never cache grants across transactions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import NotAuthorizedError
from ..models import PermissionLevel, ResourceKind
from ..store import StoreTransaction

logger = logging.getLogger(__name__)


@dataclass
class BoundResource:
    """A collection or document bound to the transaction it was read in.

    Exposes the two things a permission check needs: who owns the resource
    and what explicit grant an identity holds on it.
    """

    kind: ResourceKind
    resource_id: str
    owner_identity: str
    txn: StoreTransaction

    def owner(self) -> str:
        return self.owner_identity

    def permission_lookup(self, identity: str) -> PermissionLevel | None:
        grant = self.txn.get_grant(self.kind, self.resource_id, identity)
        return grant.level if grant else None


def _load_collection(txn: StoreTransaction, resource_id: str) -> str | None:
    collection = txn.get_collection(resource_id)
    return collection.owner if collection else None


def _load_document(txn: StoreTransaction, resource_id: str) -> str | None:
    document = txn.get_document(resource_id)
    return document.owner if document else None


_LOADERS = {
    ResourceKind.COLLECTION: _load_collection,
    ResourceKind.DOCUMENT: _load_document,
}


class PermissionEngine:
    """Evaluates ownership and grants for collections and documents.

    Thread safety:
        This class is stateless and thread-safe.

    Example:
        >>> engine = PermissionEngine()
        >>> with store.transaction(write=False) as txn:
        ...     engine.has_permission(
        ...         txn, ResourceKind.DOCUMENT, "d1", "user:bob", PermissionLevel.EDIT
        ...     )
        False
    """

    def bind(
        self, txn: StoreTransaction, kind: ResourceKind, resource_id: str
    ) -> BoundResource | None:
        """Load a resource for permission checks, or None if it does not exist."""
        owner = _LOADERS[kind](txn, resource_id)
        if owner is None:
            return None
        return BoundResource(kind=kind, resource_id=resource_id, owner_identity=owner, txn=txn)

    @staticmethod
    def check(resource: BoundResource, identity: str, required: PermissionLevel) -> bool:
        """Check an already loaded resource."""
        # Owner always has full access
        if identity == resource.owner():
            return True

        level = resource.permission_lookup(identity)
        if level is None:
            return False
        return level >= required

    def has_permission(
        self,
        txn: StoreTransaction,
        kind: ResourceKind,
        resource_id: str,
        identity: str,
        required: PermissionLevel,
    ) -> bool:
        """Check whether ``identity`` holds at least ``required`` on a resource.

        Args:
            txn: Open store transaction
            kind: Collection or document
            resource_id: Resource identifier
            identity: Identity to check
            required: Minimum level needed

        Returns:
            True if access is granted; False when the resource does not exist
        """
        resource = self.bind(txn, kind, resource_id)
        if resource is None:
            return False
        return self.check(resource, identity, required)

    def require(
        self,
        resource: BoundResource,
        caller: str,
        required: PermissionLevel,
        action: str,
    ) -> None:
        """Check permission and raise if denied.

        Raises:
            NotAuthorizedError: If ``caller`` lacks ``required``
        """
        if not self.check(resource, caller, required):
            self._deny(resource, caller, action, required)

    def require_owner(self, resource: BoundResource, caller: str, action: str) -> None:
        """Require true ownership; grants of any level do not suffice.

        Raises:
            NotAuthorizedError: If ``caller`` is not the owner
        """
        if caller != resource.owner():
            self._deny(resource, caller, action, None)

    def _deny(
        self,
        resource: BoundResource,
        caller: str,
        action: str,
        required: PermissionLevel | None,
    ) -> None:
        logger.info(
            "Permission denied",
            extra={
                "caller": caller,
                "kind": resource.kind.value,
                "resource_id": resource.resource_id,
                "action": action,
                "required": required.name if required is not None else "OWNER",
            },
        )
        raise NotAuthorizedError(caller, resource.resource_id, action)
