"""
Permission administration: owner-only grant and revoke.

Only the true owner may change grants. An ADMIN grantee cannot grant
further, which keeps delegation one hop deep.
"""

from __future__ import annotations

import logging
from typing import Any

from ..clock import CallContext
from ..errors import CollectionNotFoundError, DocumentNotFoundError
from ..models import PermissionGrant, PermissionLevel, ResourceKind
from ..store import StoreTransaction
from .permissions import BoundResource, PermissionEngine
from .validation import to_permission_level

logger = logging.getLogger(__name__)

_NOT_FOUND = {
    ResourceKind.COLLECTION: CollectionNotFoundError,
    ResourceKind.DOCUMENT: DocumentNotFoundError,
}


class PermissionAdmin:
    """Grant, revoke and inspect explicit permission levels."""

    def __init__(self, permissions: PermissionEngine) -> None:
        self.permissions = permissions

    def _bind(self, txn: StoreTransaction, kind: ResourceKind, resource_id: str) -> BoundResource:
        resource = self.permissions.bind(txn, kind, resource_id)
        if resource is None:
            raise _NOT_FOUND[kind](resource_id)
        return resource

    def grant(
        self,
        txn: StoreTransaction,
        ctx: CallContext,
        kind: ResourceKind,
        resource_id: str,
        identity: str,
        level: Any,
    ) -> PermissionGrant:
        """Set ``identity``'s level on a resource, overwriting any previous grant.

        Checks run in order: resource exists, caller is owner, level is valid.

        Raises:
            CollectionNotFoundError / DocumentNotFoundError: Resource missing
            NotAuthorizedError: Caller is not the owner
            UnknownPermissionLevelError: Level outside [0, 3]
        """
        resource = self._bind(txn, kind, resource_id)
        self.permissions.require_owner(resource, ctx.caller, "grant permissions on")
        permission_level = to_permission_level(level)

        grant = PermissionGrant(
            kind=kind,
            resource_id=resource_id,
            identity=identity,
            level=permission_level,
        )
        txn.upsert_grant(grant)

        logger.info(
            "Granted permission",
            extra={
                "kind": kind.value,
                "resource_id": resource_id,
                "identity": identity,
                "level": permission_level.name,
                "caller": ctx.caller,
            },
        )
        return grant

    def revoke(
        self,
        txn: StoreTransaction,
        ctx: CallContext,
        kind: ResourceKind,
        resource_id: str,
        identity: str,
    ) -> bool:
        """Remove ``identity``'s grant. Returns False if there was none."""
        resource = self._bind(txn, kind, resource_id)
        self.permissions.require_owner(resource, ctx.caller, "revoke permissions on")
        removed = txn.delete_grant(kind, resource_id, identity)

        logger.info(
            "Revoked permission",
            extra={
                "kind": kind.value,
                "resource_id": resource_id,
                "identity": identity,
                "removed": removed,
                "caller": ctx.caller,
            },
        )
        return removed

    def get_level(
        self,
        txn: StoreTransaction,
        kind: ResourceKind,
        resource_id: str,
        identity: str,
    ) -> PermissionLevel:
        """Explicit grant level, NONE when absent. Ownership is not reported."""
        grant = txn.get_grant(kind, resource_id, identity)
        return grant.level if grant else PermissionLevel.NONE
