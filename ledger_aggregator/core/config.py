from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    An invalid RPC_URL fails at startup, before anything is polled.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects log rendering."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging."""

    # Ledger RPC
    RPC_URL: HttpUrl = Field(
        default="https://api.devnet.solana.com/", validate_default=True
    )
    """JSON-RPC endpoint of the ledger node."""

    WATCHED_ADDRESS: Optional[str] = None
    """Account whose signatures are ingested. Derived from the node identity if unset."""

    LEDGER_CLIENT: Literal["solana", "mock"] = "solana"
    """Which ledger client implementation to use."""

    COMMITMENT: Literal["confirmed", "finalized"] = "finalized"
    """Commitment level requested for listings and fetches."""

    RPC_TIMEOUT: float = 30.0
    """HTTP timeout in seconds for a single RPC request."""

    # Ingestion
    POLL_INTERVAL_SECONDS: float = 1.0
    """Fixed delay between ingestion cycles."""

    PAGE_SIZE: int = 1000
    """Signatures requested per listing call."""

    CALL_TIMEOUT: float = 60.0
    """Hard timeout for any single ledger client call made by the poller."""

    # Query API
    LOCAL_ADDRESS: str = "0.0.0.0:0"
    """host:port the query API binds to."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()
