"""
DocReg Server - permission-gated metadata registry for documents.

This package records ownership, collections, version history and access
grants for documents whose bytes live in an external content-addressed
store. The registry only keeps a storage location and a content hash.

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌──────────────────┐
    │   Client    │────▶│  HTTP API   │────▶│ RegistryService  │
    │             │     │  (FastAPI)  │     │ (locks + clock)  │
    └─────────────┘     └─────────────┘     └────────┬─────────┘
                                                     │
                        ┌────────────────────────────┼──────────────┐
                        ▼                            ▼              ▼
                 ┌─────────────┐            ┌──────────────┐  ┌───────────┐
                 │ Permission  │            │ Collection / │  │ Permission│
                 │   Engine    │◀───────────│ Document /   │  │   Admin   │
                 └─────────────┘            │ Membership   │  └───────────┘
                                            └──────┬───────┘
                                                   ▼
                                  ┌─────────────────────────────────┐
                                  │  RegistryStore (SQLite/memory)  │
                                  └─────────────────────────────────┘

Invariants:
    - Every mutation runs in one store transaction; failed checks write nothing
    - Owners always pass permission checks on their own resources
    - Document versions are append-only and numbered 1, 2, 3, ...
    - Deletes never cascade to versions, memberships or grants

How to change safely:
    - New tables must be added to both store backends
    - New operations go through RegistryService so locking stays uniform
"""

from ._version import __version__

__all__ = ["__version__"]
