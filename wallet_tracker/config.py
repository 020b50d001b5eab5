"""
Wallet Tracker Configuration - Endpoints, cadences and infrastructure URLs.

Values come from environment variables (a local .env file is loaded first).
Tracking cadences are fixed constants of the pipeline, kept here so tests
can shrink them.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .models import Chain


@dataclass
class ChainConfig:
    """Configuration for a specific blockchain API."""
    chain: Chain
    api_url: str
    enabled: bool = True

    # Upper bound for every outbound call to this chain
    request_timeout_seconds: float = 20.0

    # Page size for account transaction queries
    max_transactions_per_query: int = 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain.value,
            "api_url": self.api_url,
            "enabled": self.enabled,
            "request_timeout_seconds": self.request_timeout_seconds,
            "max_transactions_per_query": self.max_transactions_per_query,
        }


@dataclass
class TrackingConfig:
    """Polling state machine constants."""

    # Blocks looked back when tracking starts
    lookback_blocks: int = 1000

    # Delay before a wallet's next cycle
    poll_interval_seconds: float = 60.0

    # Delay before a failed cycle is retried
    retry_delay_seconds: float = 30.0

    # Delay between consumer bootstrap attempts
    bootstrap_retry_seconds: float = 5.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "lookback_blocks": self.lookback_blocks,
            "poll_interval_seconds": self.poll_interval_seconds,
            "retry_delay_seconds": self.retry_delay_seconds,
            "bootstrap_retry_seconds": self.bootstrap_retry_seconds,
        }


@dataclass
class QueueConfig:
    """Redis job queue settings."""
    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "wallet_track_queue"

    # Fixed backoff between reconnect attempts
    reconnect_delay_seconds: float = 5.0

    # Blocking pop timeout; also the delayed-job promotion granularity
    poll_timeout_seconds: int = 1

    @property
    def processing_key(self) -> str:
        return f"{self.queue_name}:processing"

    @property
    def delayed_key(self) -> str:
        return f"{self.queue_name}:delayed"

    @property
    def dead_letter_key(self) -> str:
        return f"{self.queue_name}:dead"


@dataclass
class DatabaseConfig:
    """SQLAlchemy engine settings."""
    url: str = "postgresql://localhost:5432/wallet_tracker"
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    echo: bool = False


@dataclass
class WalletTrackerConfig:
    """Main configuration for the wallet tracker."""

    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: Optional[str] = None

    chains: dict[Chain, ChainConfig] = field(default_factory=dict)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def __post_init__(self) -> None:
        """Initialize default chain configs if not provided."""
        if not self.chains:
            self.chains = self._default_chain_configs()
        if self.log_level is None:
            self.log_level = "INFO" if self.is_production else "DEBUG"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def _default_chain_configs(self) -> dict[Chain, ChainConfig]:
        return {
            Chain.APTOS: ChainConfig(
                chain=Chain.APTOS,
                api_url="https://fullnode.mainnet.aptoslabs.com/v1",
            ),
            Chain.SUI: ChainConfig(
                chain=Chain.SUI,
                api_url="https://fullnode.mainnet.sui.io",
            ),
            Chain.MOVEMENT: ChainConfig(
                chain=Chain.MOVEMENT,
                api_url="https://seed-node1.movementlabs.xyz",
            ),
        }

    @classmethod
    def from_env(cls) -> "WalletTrackerConfig":
        """Build configuration from environment variables."""
        load_dotenv()

        try:
            timeout = float(os.environ.get("CHAIN_REQUEST_TIMEOUT", "20"))
            port = int(os.environ.get("PORT", "3000"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}")

        chains = {
            Chain.APTOS: ChainConfig(
                chain=Chain.APTOS,
                api_url=os.environ.get(
                    "APTOS_API_URL", "https://fullnode.mainnet.aptoslabs.com/v1"
                ),
                request_timeout_seconds=timeout,
            ),
            Chain.SUI: ChainConfig(
                chain=Chain.SUI,
                api_url=os.environ.get("SUI_API_URL", "https://fullnode.mainnet.sui.io"),
                request_timeout_seconds=timeout,
            ),
            Chain.MOVEMENT: ChainConfig(
                chain=Chain.MOVEMENT,
                api_url=os.environ.get(
                    "MOVEMENT_API_URL", "https://seed-node1.movementlabs.xyz"
                ),
                request_timeout_seconds=timeout,
            ),
        }

        return cls(
            environment=os.environ.get("ENVIRONMENT", "development"),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=port,
            log_level=os.environ.get("LOG_LEVEL"),
            chains=chains,
            queue=QueueConfig(
                redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
                queue_name=os.environ.get("WALLET_TRACK_QUEUE", "wallet_track_queue"),
            ),
            database=DatabaseConfig(
                url=os.environ.get(
                    "DATABASE_URL", "postgresql://localhost:5432/wallet_tracker"
                ),
            ),
        )

    def get_chain_config(self, chain: Chain) -> Optional[ChainConfig]:
        """Get configuration for a specific chain."""
        return self.chains.get(chain)

    def get_enabled_chains(self) -> list[Chain]:
        """Get list of enabled chains."""
        return [
            chain for chain, config in self.chains.items()
            if config.enabled
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "environment": self.environment,
            "host": self.host,
            "port": self.port,
            "log_level": self.log_level,
            "chains": {k.value: v.to_dict() for k, v in self.chains.items()},
            "tracking": self.tracking.to_dict(),
            "queue_name": self.queue.queue_name,
        }


# Default configuration instance
_default_config: Optional[WalletTrackerConfig] = None


def get_config() -> WalletTrackerConfig:
    """Get the default configuration, reading the environment on first use."""
    global _default_config
    if _default_config is None:
        _default_config = WalletTrackerConfig.from_env()
    return _default_config


def set_config(config: WalletTrackerConfig) -> None:
    """Set the default configuration."""
    global _default_config
    _default_config = config
