"""Input validation for registry operations."""

from __future__ import annotations

from typing import Any

from ..errors import InvalidParamsError, UnknownPermissionLevelError
from ..models import (
    CONTENT_HASH_SIZE,
    MAX_ID_LENGTH,
    MAX_STORED_INT,
    PermissionLevel,
)


def check_id(value: Any, field_name: str) -> str:
    """Validate a resource identifier (1 to 36 characters)."""
    if not isinstance(value, str) or not value:
        raise InvalidParamsError(f"{field_name} must be a non-empty string", field_name)
    if len(value) > MAX_ID_LENGTH:
        raise InvalidParamsError(
            f"{field_name} exceeds {MAX_ID_LENGTH} characters", field_name
        )
    return value


def check_identity(value: Any, field_name: str = "identity") -> str:
    if not isinstance(value, str) or not value:
        raise InvalidParamsError(f"{field_name} must be a non-empty string", field_name)
    return value


def check_text(
    value: Any,
    field_name: str,
    max_length: int,
    optional: bool = False,
) -> str | None:
    """Validate a bounded text field.

    Args:
        value: Value to check
        field_name: Name used in the error
        max_length: Maximum number of characters
        optional: Whether None is accepted

    Returns:
        The value unchanged

    Raises:
        InvalidParamsError: If the value is missing, not a string or too long
    """
    if value is None:
        if optional:
            return None
        raise InvalidParamsError(f"{field_name} is required", field_name)
    if not isinstance(value, str):
        raise InvalidParamsError(f"{field_name} must be a string", field_name)
    if len(value) > max_length:
        raise InvalidParamsError(f"{field_name} exceeds {max_length} characters", field_name)
    return value


def check_content_hash(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != CONTENT_HASH_SIZE:
        raise InvalidParamsError(
            f"content_hash must be exactly {CONTENT_HASH_SIZE} bytes", "content_hash"
        )
    return bytes(value)


def check_size(value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidParamsError("size must be a non-negative integer", "size")
    if value > MAX_STORED_INT:
        raise InvalidParamsError(f"size exceeds {MAX_STORED_INT}", "size")
    return value


def is_valid_permission_level(level: Any) -> bool:
    """Return True iff ``level`` is an integer in [0, 3]."""
    if isinstance(level, bool) or not isinstance(level, int):
        return False
    return PermissionLevel.NONE <= level <= PermissionLevel.ADMIN


def to_permission_level(level: Any) -> PermissionLevel:
    """Convert to PermissionLevel.

    Raises:
        UnknownPermissionLevelError: If ``level`` is outside [0, 3]
    """
    if not is_valid_permission_level(level):
        raise UnknownPermissionLevelError(level)
    return PermissionLevel(level)
