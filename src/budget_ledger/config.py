"""Configuration management for the budget ledger."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    store_backend: str
    host: str
    port: int
    debug: bool
    log_level: str
    optimistic_retry_limit: int

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.store_backend not in ("sql", "memory"):
            raise ValueError(f"STORE_BACKEND must be 'sql' or 'memory', got {self.store_backend!r}")
        if self.optimistic_retry_limit < 1:
            raise ValueError("OPTIMISTIC_RETRY_LIMIT must be at least 1")

    @property
    def HOST(self) -> str:
        """Alias for host."""
        return self.host

    @property
    def PORT(self) -> int:
        """Alias for port."""
        return self.port

    @property
    def DEBUG(self) -> bool:
        """Alias for debug."""
        return self.debug

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./budget_ledger.db",
            ),
            store_backend=os.getenv("STORE_BACKEND", "sql").lower(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            optimistic_retry_limit=int(os.getenv("OPTIMISTIC_RETRY_LIMIT", "5")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
