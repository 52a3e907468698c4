"""Client settings and configuration.

This module defines all configuration options for the Antenna client layer.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from antenna.core.chains import ChainConfig, get_chain


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Chain selection
    chain: str = Field(default="base", alias="ANTENNA_CHAIN")
    rpc_url: str | None = Field(default=None, alias="ANTENNA_RPC_URL")
    app_id: int = Field(default=1, alias="ANTENNA_APP_ID")
    http_timeout_seconds: float = Field(default=15.0, alias="ANTENNA_HTTP_TIMEOUT_SECONDS")

    # Historical log retrieval
    lookback_blocks: int | None = Field(default=None, alias="ANTENNA_LOOKBACK_BLOCKS")
    log_chunk_size: int = Field(default=2000, alias="ANTENNA_LOG_CHUNK_SIZE")
    read_limit: int = Field(default=50, alias="ANTENNA_READ_LIMIT")

    # Retry with exponential backoff for transient RPC failures
    retry_max_retries: int = Field(default=3, alias="ANTENNA_RETRY_MAX_RETRIES")
    retry_base_delay_ms: int = Field(default=1000, alias="ANTENNA_RETRY_BASE_DELAY_MS")
    retry_max_delay_ms: int = Field(default=10_000, alias="ANTENNA_RETRY_MAX_DELAY_MS")

    # Real-time subscription and confirmations
    poll_interval_seconds: float = Field(default=15.0, alias="ANTENNA_POLL_INTERVAL_SECONDS")
    confirmation_timeout_seconds: float = Field(
        default=120.0,
        alias="ANTENNA_CONFIRMATION_TIMEOUT_SECONDS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def chain_config(self) -> ChainConfig:
        """Return the deployment metadata for the configured chain."""
        return get_chain(self.chain)

    @property
    def effective_rpc_url(self) -> str:
        """Return the RPC URL, preferring an explicit override."""
        return self.rpc_url or self.chain_config.rpc

    @property
    def effective_lookback(self) -> int:
        """Return the block lookback window used for history reads."""
        if self.lookback_blocks is not None:
            return self.lookback_blocks
        return self.chain_config.default_lookback


settings = Settings()
