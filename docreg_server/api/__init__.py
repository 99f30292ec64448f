"""
HTTP API for the document registry.

Thin FastAPI layer over RegistryService. The caller identity arrives in
the actor header; every decision about it is made by the engine.
"""

from .app import build_service, create_app
from .config import Settings

__all__ = ["create_app", "build_service", "Settings"]
