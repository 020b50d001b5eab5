"""
Wallet Tracker Data Models - Canonical event and job structures.

Every chain adapter maps its own wire format into the two canonical
records defined here (TokenTransfer, TokenSwap). The orchestrator turns
them into stored transaction rows and moves TrackingJob messages through
the job queue.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Chain(Enum):
    """Supported blockchain networks (closed set)."""
    APTOS = "aptos"
    SUI = "sui"
    MOVEMENT = "movement"

    @classmethod
    def values(cls) -> list[str]:
        return [c.value for c in cls]


class TransactionType(Enum):
    """Kind of canonical event."""
    TRANSFER = "transfer"
    SWAP = "swap"

    @classmethod
    def values(cls) -> list[str]:
        return [t.value for t in cls]


@dataclass
class TokenTransfer:
    """
    A token movement into or out of a tracked wallet.

    Amounts are kept as the decimal strings reported by the chain.
    """
    token_address: str
    amount: str
    from_address: str
    to_address: str
    timestamp: datetime
    transaction_hash: str
    block_height: int

    token_name: Optional[str] = None
    token_symbol: Optional[str] = None
    decimals: Optional[int] = None

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType.TRANSFER

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenAddress": self.token_address,
            "tokenName": self.token_name,
            "tokenSymbol": self.token_symbol,
            "amount": self.amount,
            "decimals": self.decimals,
            "fromAddress": self.from_address,
            "toAddress": self.to_address,
            "timestamp": self.timestamp.isoformat(),
            "transactionHash": self.transaction_hash,
            "blockHeight": self.block_height,
        }


@dataclass
class TokenSwap:
    """
    A swap executed by a tracked wallet.

    Detection is heuristic (event and function names), not protocol-exact.
    """
    token_in_address: str
    amount_in: str
    token_out_address: str
    amount_out: str
    exchange_address: str
    wallet_address: str
    timestamp: datetime
    transaction_hash: str
    block_height: int

    token_in_name: Optional[str] = None
    token_in_symbol: Optional[str] = None
    decimals_in: Optional[int] = None
    token_out_name: Optional[str] = None
    token_out_symbol: Optional[str] = None
    decimals_out: Optional[int] = None
    exchange_name: Optional[str] = None

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType.SWAP

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokenInAddress": self.token_in_address,
            "tokenInName": self.token_in_name,
            "tokenInSymbol": self.token_in_symbol,
            "amountIn": self.amount_in,
            "decimalsIn": self.decimals_in,
            "tokenOutAddress": self.token_out_address,
            "tokenOutName": self.token_out_name,
            "tokenOutSymbol": self.token_out_symbol,
            "amountOut": self.amount_out,
            "decimalsOut": self.decimals_out,
            "exchangeAddress": self.exchange_address,
            "exchangeName": self.exchange_name,
            "walletAddress": self.wallet_address,
            "timestamp": self.timestamp.isoformat(),
            "transactionHash": self.transaction_hash,
            "blockHeight": self.block_height,
        }


@dataclass
class TrackingJob:
    """
    Queue message asking for one poll cycle of a wallet.

    from_block overrides the stored cursor when set.
    """
    wallet_address: str
    chain: Chain
    from_block: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "walletAddress": self.wallet_address,
            "blockchain": self.chain.value,
        }
        if self.from_block is not None:
            data["fromBlock"] = self.from_block
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TrackingJob":
        """
        Build a job from its wire form.

        Raises KeyError/ValueError/TypeError on malformed input.
        """
        from_block = data.get("fromBlock")
        return cls(
            wallet_address=str(data["walletAddress"]),
            chain=Chain(data["blockchain"]),
            from_block=int(from_block) if from_block is not None else None,
        )


@dataclass
class OperationResult:
    """Outcome of a start/stop request, safe to hand to API callers."""
    success: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message}
