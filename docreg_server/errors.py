"""
Error types for the document registry.

Every failure of a registry operation is raised as a RegistryError subclass:
- NotAuthorizedError: Caller lacks ownership or a sufficient grant
- CollectionNotFoundError / DocumentNotFoundError: Resource does not exist
- AlreadyExistsError: Identifier already taken
- InvalidParamsError: Input outside the field bounds
- UnknownPermissionLevelError: Level outside [0, 3]

Invariants:
    - Errors are raised before any write, so state is unchanged on failure
    - Nothing is retried internally; retry policy belongs to the caller
    - Each error carries a stable code for programmatic handling
"""

from __future__ import annotations

from typing import Any


class RegistryError(Exception):
    """Base exception for all registry errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    code = "REGISTRY_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to a response body."""
        return {"error": self.message, "error_code": self.code, "details": self.details}


class NotAuthorizedError(RegistryError):
    """Caller is neither the owner nor holds a sufficient grant."""

    code = "NOT_AUTHORIZED"

    def __init__(self, caller: str, resource_id: str, action: str) -> None:
        super().__init__(
            f"{caller} is not authorized to {action} {resource_id}",
            details={"caller": caller, "resource_id": resource_id, "action": action},
        )
        self.caller = caller
        self.resource_id = resource_id
        self.action = action


class NotFoundError(RegistryError):
    """Referenced resource does not exist."""

    code = "NOT_FOUND"
    kind = "resource"

    def __init__(self, resource_id: str) -> None:
        super().__init__(
            f"{self.kind.capitalize()} not found: {resource_id}",
            details={"resource_id": resource_id},
        )
        self.resource_id = resource_id


class CollectionNotFoundError(NotFoundError):
    code = "COLLECTION_NOT_FOUND"
    kind = "collection"


class DocumentNotFoundError(NotFoundError):
    code = "DOCUMENT_NOT_FOUND"
    kind = "document"


class AlreadyExistsError(RegistryError):
    """A resource with this identifier already exists."""

    code = "ALREADY_EXISTS"

    def __init__(self, kind: str, resource_id: str) -> None:
        super().__init__(
            f"{kind.capitalize()} already exists: {resource_id}",
            details={"kind": kind, "resource_id": resource_id},
        )
        self.resource_id = resource_id


class InvalidParamsError(RegistryError):
    """Operation input is outside the accepted bounds.

    Raised when:
    - An identifier is empty or too long
    - A text field exceeds its length limit
    - The content hash is not exactly 32 bytes
    - A size or version number is out of range
    """

    code = "INVALID_PARAMS"

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(message, details={"field": field_name})
        self.field_name = field_name


class UnknownPermissionLevelError(RegistryError):
    """Permission level is not one of NONE, VIEW, EDIT, ADMIN."""

    code = "UNKNOWN_PERMISSION_LEVEL"

    def __init__(self, level: Any) -> None:
        super().__init__(
            f"Unknown permission level: {level!r}, must be between 0 and 3",
            details={"level": level},
        )
        self.level = level
