"""
Document registry test suite.

This package contains:
- unit/: Unit tests (in-memory store, no filesystem unless noted)
- integration/: Integration tests (SQLite store, HTTP API)
"""
