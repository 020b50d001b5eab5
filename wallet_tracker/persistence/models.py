"""
Persistence ORM Models.

============================================================
PURPOSE
============================================================
Tables owned by the persistence gateway:

- tracked_wallets: one polling cursor per (address, blockchain)
- transactions: canonical transfer/swap events, append-only

Serialized field names match the stored document contract
(walletAddress, blockchain, lastProcessedBlock, transactionType, ...).

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Base(DeclarativeBase):
    """Declarative base for all tracker models."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """
    Mixin providing standard timestamp columns.

    All timestamps are timezone-aware UTC.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        comment="Last update timestamp (UTC)"
    )


class TrackedWallet(Base, TimestampMixin):
    """
    Polling cursor for one wallet on one chain.

    ============================================================
    LIFECYCLE
    ============================================================
    - Created by upsert on the first track request
    - last_processed_block advances after every successful cycle
    - is_active flips to False on stop; rows are never deleted
    ============================================================
    """

    __tablename__ = "tracked_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    address: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Wallet address as submitted"
    )

    blockchain: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Chain identifier (aptos, sui, movement)"
    )

    last_processed_block: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        default=None,
        comment="Cursor: last block/checkpoint fully processed"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    __table_args__ = (
        UniqueConstraint("address", "blockchain", name="uq_tracked_wallets_address_chain"),
        Index("idx_tracked_wallets_chain", "blockchain"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "blockchain": self.blockchain,
            "lastProcessedBlock": self.last_processed_block,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class TransactionRecord(Base, TimestampMixin):
    """
    Canonical transfer or swap event discovered by a poll cycle.

    ============================================================
    DATA LIFECYCLE
    ============================================================
    - Mutability: IMMUTABLE (append-only)
    - Retention: indefinite
    - fingerprint: sha256 of the canonical content, unique, so the
      same event found by overlapping polls is stored once
    ============================================================
    """

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    blockchain: Mapped[str] = mapped_column(String(32), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    transaction_hash: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    block_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Transfers
    token_address: Mapped[Optional[str]] = mapped_column(String(512))
    token_name: Mapped[Optional[str]] = mapped_column(String(255))
    token_symbol: Mapped[Optional[str]] = mapped_column(String(64))
    amount: Mapped[Optional[str]] = mapped_column(String(128))
    decimals: Mapped[Optional[int]] = mapped_column(Integer)
    from_address: Mapped[Optional[str]] = mapped_column(String(255))
    to_address: Mapped[Optional[str]] = mapped_column(String(255))

    # Swaps
    token_in_address: Mapped[Optional[str]] = mapped_column(String(512))
    token_in_name: Mapped[Optional[str]] = mapped_column(String(255))
    token_in_symbol: Mapped[Optional[str]] = mapped_column(String(64))
    amount_in: Mapped[Optional[str]] = mapped_column(String(128))
    decimals_in: Mapped[Optional[int]] = mapped_column(Integer)
    token_out_address: Mapped[Optional[str]] = mapped_column(String(512))
    token_out_name: Mapped[Optional[str]] = mapped_column(String(255))
    token_out_symbol: Mapped[Optional[str]] = mapped_column(String(64))
    amount_out: Mapped[Optional[str]] = mapped_column(String(128))
    decimals_out: Mapped[Optional[int]] = mapped_column(Integer)
    exchange_address: Mapped[Optional[str]] = mapped_column(String(255))
    exchange_name: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        Index("idx_transactions_wallet_chain_type", "wallet_address", "blockchain", "transaction_type"),
        Index("idx_transactions_chain_height", "blockchain", "block_height"),
        Index("idx_transactions_timestamp", "timestamp"),
    )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "blockchain": self.blockchain,
            "transactionType": self.transaction_type,
            "transactionHash": self.transaction_hash,
            "blockHeight": self.block_height,
            "timestamp": _iso(self.timestamp),
            "walletAddress": self.wallet_address,
            "createdAt": _iso(self.created_at),
        }
        if self.transaction_type == "transfer":
            data.update({
                "tokenAddress": self.token_address,
                "tokenName": self.token_name,
                "tokenSymbol": self.token_symbol,
                "amount": self.amount,
                "decimals": self.decimals,
                "fromAddress": self.from_address,
                "toAddress": self.to_address,
            })
        else:
            data.update({
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
            })
        return data
