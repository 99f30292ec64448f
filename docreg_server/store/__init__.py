"""
Storage tables for the document registry.

This module provides a pluggable storage interface supporting:
- SQLite (single database file, recommended for deployments)
- In-memory (tests and embedded use)

Invariants:
    - Every block opened with transaction() is all-or-nothing
    - Both backends expose identical ordering and duplicate-key behaviour

How to change safely:
    - New backends must implement the RegistryStore protocol
    - Run the shared store test-suite against every backend
"""

from .base import (
    TABLE_NAMES,
    DuplicateKeyError,
    ReadOnlyTransactionError,
    RegistryStore,
    StoreError,
    StoreTransaction,
    create_store,
)
from .memory import InMemoryStore
from .sqlite import SqliteStore

__all__ = [
    # Protocol and types
    "RegistryStore",
    "StoreTransaction",
    "StoreError",
    "DuplicateKeyError",
    "ReadOnlyTransactionError",
    "TABLE_NAMES",
    # Factory
    "create_store",
    # Implementations
    "InMemoryStore",
    "SqliteStore",
]
