"""Configuration for the Arke MCP server using pydantic-settings.

All settings are driven by environment variables with the ARKE_ prefix.
"""

from __future__ import annotations

import logging
from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Service endpoints, transport policy and tool limits."""

    model_config = SettingsConfigDict(
        env_prefix="ARKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    search_url: str = "https://search.arke.institute"
    api_url: str = "https://api.arke.institute"
    ipfs_url: str = "https://ipfs.arke.institute"
    ocr_url: str = "https://ocr-api.arke.institute"
    view_url: str = "https://arke.institute"

    user_agent: str = f"arke-mcp/{__version__}"

    timeout_total: float = 30.0
    ocr_timeout: float = 300.0

    max_attempts: int = 3
    backoff_multiplier: float = 0.5
    backoff_min: float = 0.5
    backoff_max: float = 8.0

    default_top_k: int = 10
    concise_max_results: int = 20
    verbose_max_results: int = 5
    max_entities: int = 10
    max_ocr_batch: int = 10


class NamespaceCatalog(BaseModel):
    """Entity categories the search service accepts, fixed at startup."""

    model_config = ConfigDict(frozen=True)

    namespaces: Tuple[str, ...] = ()
    description: Dict[str, str] = {}

    def __contains__(self, namespace: object) -> bool:
        return namespace in self.namespaces

    def describe(self) -> str:
        """Render ``name (description)`` pairs for tool documentation."""
        return ", ".join(
            f"{ns} ({self.description[ns]})" if self.description.get(ns) else ns
            for ns in self.namespaces
        )


def get_settings() -> Settings:
    """Load settings from the environment."""
    s = Settings()
    logger.debug("Loaded settings: search=%s api=%s", s.search_url, s.api_url)
    return s
