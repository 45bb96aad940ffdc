"""
Ingestion configuration.

Defines settings for the polling interval, page size, per-call timeouts,
ledger client selection and the retry policy for transient RPC errors.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field

from ledger_aggregator.core.config import Settings, get_settings

MAX_PAGE_SIZE = 1000


class RetryConfig(BaseModel):
    """Configuration for retry behavior with exponential backoff."""

    max_attempts: int = Field(default=3, ge=1, description="Maximum retry attempts")
    initial_delay: float = Field(
        default=0.5, gt=0, description="Initial delay in seconds"
    )
    max_delay: float = Field(default=10.0, gt=0, description="Maximum delay in seconds")
    exponential_base: float = Field(default=2.0, gt=1, description="Backoff multiplier")
    jitter: bool = Field(
        default=True, description="Add random jitter to prevent thundering herd"
    )


class IngestionConfig(BaseModel):
    """Main ingestion loop configuration."""

    # Polling behavior
    poll_interval_seconds: float = Field(
        default=1.0, gt=0, description="Fixed delay after every ingestion cycle"
    )
    page_size: int = Field(
        default=MAX_PAGE_SIZE,
        ge=1,
        le=MAX_PAGE_SIZE,
        description="Signatures requested per listing call",
    )
    call_timeout: float = Field(
        default=60.0, gt=0, description="Hard timeout for a single ledger client call"
    )
    shutdown_timeout: float = Field(
        default=5.0, gt=0, description="Grace period for the loop to stop before cancel"
    )

    # Ledger client settings
    client_type: Literal["solana", "mock"] = Field(
        default="solana", description="Type of ledger client (solana, mock)"
    )
    rpc_url: str = Field(
        default="https://api.devnet.solana.com/", description="Ledger JSON-RPC URL"
    )
    rpc_timeout: float = Field(
        default=30.0, gt=0, description="HTTP timeout for one RPC request"
    )
    commitment: Literal["confirmed", "finalized"] = Field(
        default="finalized", description="Commitment level for listings and fetches"
    )
    watched_address: Optional[str] = Field(
        default=None, description="Account whose signatures are listed"
    )

    # Retry for transient RPC errors inside the client
    retry: RetryConfig = Field(default_factory=RetryConfig)

    # Metrics
    metrics_history_size: int = Field(
        default=100, ge=1, description="Ingestion cycles kept in memory"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionConfig":
        """Build the ingestion config from process settings."""
        return cls(
            poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
            page_size=settings.PAGE_SIZE,
            call_timeout=settings.CALL_TIMEOUT,
            client_type=settings.LEDGER_CLIENT,
            rpc_url=str(settings.RPC_URL),
            rpc_timeout=settings.RPC_TIMEOUT,
            commitment=settings.COMMITMENT,
            watched_address=settings.WATCHED_ADDRESS,
        )


def get_ingestion_config() -> IngestionConfig:
    """Get the ingestion configuration derived from the current settings."""
    return IngestionConfig.from_settings(get_settings())
