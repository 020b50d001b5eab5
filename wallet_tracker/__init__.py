"""
Wallet Tracker - Move-chain wallet activity tracking.

Polls Aptos, Sui and Movement for token transfers and swaps of the
wallets it is asked to track, stores them, and keeps one advancing
cursor per wallet. Scheduling runs through a Redis job queue so every
active wallet is polled again a minute after its last cycle.

Usage:
    from wallet_tracker import build_container

    container = build_container()
    await container.database.initialize()

    result = await container.service.track_wallet("0x1234...", "aptos")
    print(result.message)

    # Long-lived consumer
    await container.service.start_consumer()

HTTP:
    python run_tracker.py serve

    POST /api/wallets/track          {"walletAddress": "...", "blockchain": "sui"}
    POST /api/wallets/stop-tracking  {"walletAddress": "...", "blockchain": "sui"}
    GET  /api/wallets?blockchain=sui
    GET  /api/wallets/transactions?walletAddress=...&transactionType=swap
"""

from .adapters import (
    AdapterRegistry,
    AptosAdapter,
    BaseChainAdapter,
    MovementAdapter,
    SuiAdapter,
    extract_token_type,
)
from .app import TrackerContainer, build_container, configure_logging, create_app
from .config import (
    ChainConfig,
    DatabaseConfig,
    QueueConfig,
    TrackingConfig,
    WalletTrackerConfig,
    get_config,
    set_config,
)
from .exceptions import (
    ConfigurationError,
    PersistenceError,
    TransportError,
    UnsupportedChainError,
    UpstreamUnavailableError,
    WalletTrackerError,
)
from .job_queue import RedisJobQueue
from .models import (
    Chain,
    OperationResult,
    TokenSwap,
    TokenTransfer,
    TrackingJob,
    TransactionType,
)
from .persistence import Database, EventPage, PersistenceGateway
from .service import WalletTrackingService


__all__ = [
    # Models
    "Chain",
    "TransactionType",
    "TokenTransfer",
    "TokenSwap",
    "TrackingJob",
    "OperationResult",
    # Config
    "ChainConfig",
    "DatabaseConfig",
    "QueueConfig",
    "TrackingConfig",
    "WalletTrackerConfig",
    "get_config",
    "set_config",
    # Errors
    "WalletTrackerError",
    "UpstreamUnavailableError",
    "UnsupportedChainError",
    "PersistenceError",
    "TransportError",
    "ConfigurationError",
    # Adapters
    "BaseChainAdapter",
    "AptosAdapter",
    "SuiAdapter",
    "MovementAdapter",
    "AdapterRegistry",
    "extract_token_type",
    # Components
    "Database",
    "EventPage",
    "PersistenceGateway",
    "RedisJobQueue",
    "WalletTrackingService",
    "TrackerContainer",
    "build_container",
    "configure_logging",
    "create_app",
]

__version__ = "1.0.0"
