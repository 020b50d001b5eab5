"""
Wallet Tracker Exceptions - Error hierarchy for the tracking pipeline.

Adapter call failures and persistence failures propagate to the
orchestrator, which abandons the cycle and requeues the job.
A single unparsable upstream entry is logged and skipped inside the adapter.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from .models import Chain


class WalletTrackerError(Exception):
    """Base exception for all wallet tracker errors."""

    def __init__(
        self,
        message: str,
        chain: Optional[Chain] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.chain = chain
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "chain": self.chain.value if self.chain else None,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class UpstreamUnavailableError(WalletTrackerError):
    """Chain API unreachable, returned an error, or returned an unusable body."""

    def __init__(
        self,
        message: str,
        chain: Optional[Chain] = None,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.url = url
        self.status_code = status_code


class UnsupportedChainError(WalletTrackerError):
    """Chain identifier outside the supported set."""

    def __init__(self, chain: Any) -> None:
        value = chain.value if isinstance(chain, Chain) else str(chain)
        super().__init__(
            f"Blockchain service not implemented for {value}",
            details={
                "requested": value,
                "supported": Chain.values(),
            },
        )
        self.requested = value


class PersistenceError(WalletTrackerError):
    """Database read or write rejected."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.operation = operation
        self.original_error = original_error


class TransportError(WalletTrackerError):
    """Job queue connection lost or command rejected."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.original_error = original_error


class ConfigurationError(WalletTrackerError):
    """Invalid configuration."""
    pass
