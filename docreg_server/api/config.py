"""
HTTP surface settings.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HTTP API configuration loaded from environment."""

    # Identity header set by the authenticating proxy in front of the API
    actor_header: str = Field(default="X-Actor", description="Header carrying caller identity")

    # CORS settings
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Pagination defaults
    default_page_size: int = Field(default=50, description="Default items per page")

    model_config = {"env_prefix": "DOCREG_"}
