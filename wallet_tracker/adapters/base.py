"""
Base Chain Adapter - Abstract interface for blockchain API clients.

Every supported chain exposes the same three capabilities (current
height, token transfers, token swaps) no matter how different its wire
format is. Chain-specific parsing stays inside the adapter.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from ..config import ChainConfig
from ..exceptions import UpstreamUnavailableError
from ..models import Chain, TokenSwap, TokenTransfer


logger = logging.getLogger(__name__)


# Errors raised while walking a single malformed upstream entry
PARSE_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


def extract_token_type(type_string: str) -> str:
    """
    Extract the token type from a Move event/resource type string.

    The generic argument wins when present:
        "0x1::coin::CoinStore<0x2::usdc::USDC>" -> "0x2::usdc::USDC"
    otherwise the leading address segment is used:
        "0x1::coin::TransferEvent" -> "0x1"
    """
    if "<" in type_string and ">" in type_string:
        return type_string.split("<")[1].split(">")[0]
    return type_string.split("::")[0]


def timestamp_from_micros(value: Any) -> datetime:
    """Convert a microsecond epoch (Aptos-style) to an aware datetime."""
    return datetime.fromtimestamp(int(value) / 1_000_000, tz=timezone.utc)


def timestamp_from_millis(value: Any) -> datetime:
    """Convert a millisecond epoch (Sui-style) to an aware datetime."""
    return datetime.fromtimestamp(int(value) / 1_000, tz=timezone.utc)


class BaseChainAdapter(ABC):
    """
    Abstract base class for chain adapters.

    CONTRACT:
    1. current_height() returns the latest block/checkpoint or raises
       UpstreamUnavailableError - never a stale or zero value
    2. token_transfers()/token_swaps() return a finite list for
       [from_block, to_block]; a single unparsable transaction is logged
       and skipped, a failed API call raises UpstreamUnavailableError
    3. Every outbound call is bounded by the chain's request timeout

    Subclasses implement the three public coroutines and the chain property.
    """

    def __init__(
        self,
        chain_config: ChainConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.chain_config = chain_config
        self.api_url = chain_config.api_url.rstrip("/")
        self.page_limit = chain_config.max_transactions_per_query

        self._session = session
        self._owns_session = session is None

        # Statistics
        self._stats = {
            "total_requests": 0,
            "failed_requests": 0,
            "parse_errors": 0,
            "transfers_found": 0,
            "swaps_found": 0,
        }

    @property
    @abstractmethod
    def chain(self) -> Chain:
        """Return the chain this adapter handles."""
        pass

    @abstractmethod
    async def current_height(self) -> int:
        """Latest block height / checkpoint sequence number."""
        pass

    @abstractmethod
    async def token_transfers(
        self,
        address: str,
        from_block: int,
        to_block: Optional[int] = None,
    ) -> list[TokenTransfer]:
        """Transfers into or out of address within the block range."""
        pass

    @abstractmethod
    async def token_swaps(
        self,
        address: str,
        from_block: int,
        to_block: Optional[int] = None,
    ) -> list[TokenSwap]:
        """Swaps executed by address within the block range (best-effort)."""
        pass

    # ─────────────────────────────────────────────────────────────
    # HTTP plumbing
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(
                total=self.chain_config.request_timeout_seconds
            )
            headers = {"Content-Type": "application/json"}
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers=headers,
            )
            self._owns_session = True
        return self._session

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Perform one HTTP call and decode the JSON body.

        Raises:
            UpstreamUnavailableError: network error, timeout, non-200
                status or undecodable body
        """
        session = await self._get_session()
        self._stats["total_requests"] += 1

        try:
            async with session.request(
                method, url, params=params, json=payload
            ) as response:
                if response.status != 200:
                    self._stats["failed_requests"] += 1
                    raise UpstreamUnavailableError(
                        f"{self.chain.value} API error: HTTP {response.status}",
                        chain=self.chain,
                        url=url,
                        status_code=response.status,
                    )
                return await response.json(content_type=None)

        except asyncio.TimeoutError as e:
            self._stats["failed_requests"] += 1
            raise UpstreamUnavailableError(
                f"{self.chain.value} API timeout",
                chain=self.chain,
                url=url,
            ) from e
        except aiohttp.ClientError as e:
            self._stats["failed_requests"] += 1
            raise UpstreamUnavailableError(
                f"Network error: {e}",
                chain=self.chain,
                url=url,
            ) from e
        except ValueError as e:
            self._stats["failed_requests"] += 1
            raise UpstreamUnavailableError(
                f"Invalid JSON from {self.chain.value} API: {e}",
                chain=self.chain,
                url=url,
            ) from e

    def _unexpected_response(self, what: str, error: Exception) -> UpstreamUnavailableError:
        """Error for a response body that lacks the fields we need."""
        self._stats["failed_requests"] += 1
        return UpstreamUnavailableError(
            f"Unexpected {self.chain.value} {what} response: {error!r}",
            chain=self.chain,
        )

    def _record_parse_error(self, what: str, tx_hash: Any, error: Exception) -> None:
        self._stats["parse_errors"] += 1
        logger.error(
            f"Error parsing {self.chain.value} {what} {tx_hash}: {error!r}"
        )

    def get_stats(self) -> dict[str, Any]:
        """Get adapter statistics."""
        return {
            **self._stats,
            "chain": self.chain.value,
        }

    async def close(self) -> None:
        """Close the HTTP session if this adapter created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
