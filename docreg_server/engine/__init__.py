"""
Registry engine: permission checks and resource lifecycles.

This module handles:
- Permission evaluation with owner bypass
- Collection and document lifecycles
- Append-only document versions
- Collection membership
- Owner-only permission administration

Invariants:
    - Every mutating step runs inside one store transaction
    - All checks complete before the first write
    - Deletes never cascade

How to change safely:
    - Add operations to RegistryService, not to the individual registries' callers
    - Test both store backends for every new operation
"""

from .admin import PermissionAdmin
from .collections import CollectionRegistry
from .documents import DocumentRegistry
from .locks import ResourceLocks
from .membership import MembershipManager
from .permissions import BoundResource, PermissionEngine
from .service import RegistryService
from .validation import is_valid_permission_level

__all__ = [
    "RegistryService",
    "PermissionEngine",
    "BoundResource",
    "CollectionRegistry",
    "DocumentRegistry",
    "MembershipManager",
    "PermissionAdmin",
    "ResourceLocks",
    "is_valid_permission_level",
]
