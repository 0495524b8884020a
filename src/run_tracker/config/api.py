"""
Agent API client configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_API_BASE_URL = "https://api.codegen.com"


@dataclass
class APIConfig:
    """Configuration for the remote agent API."""

    api_token: str | None = field(default_factory=lambda: os.getenv("CODEGEN_API_TOKEN"))
    base_url: str = DEFAULT_API_BASE_URL
    timeout: float = 30.0
    default_organization_id: int | None = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if not self.base_url:
            self.base_url = DEFAULT_API_BASE_URL
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP(S) URL")
        self.base_url = self.base_url.rstrip("/")
        if isinstance(self.default_organization_id, str):
            self.default_organization_id = int(self.default_organization_id)


__all__ = ["APIConfig", "DEFAULT_API_BASE_URL"]
