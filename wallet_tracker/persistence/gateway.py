"""
Persistence Gateway.

============================================================
PURPOSE
============================================================
The only writer of tracked wallets and transaction rows.

- Cursor upsert / advance / deactivate
- Bulk event insert with fingerprint de-duplication
- Paged event queries for the HTTP layer

Every SQLAlchemy failure surfaces as PersistenceError.

============================================================
"""

import hashlib
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Chain, TokenSwap, TokenTransfer, TransactionType
from .engine import Database
from .models import TrackedWallet, TransactionRecord


logger = logging.getLogger(__name__)


ChainLike = Union[Chain, str]
CanonicalEvent = Union[TokenTransfer, TokenSwap]


def _chain_value(chain: ChainLike) -> str:
    return chain.value if isinstance(chain, Chain) else str(chain)


def _kind_value(kind: Union[TransactionType, str]) -> str:
    return kind.value if isinstance(kind, TransactionType) else str(kind)


def event_fingerprint(
    event: CanonicalEvent,
    chain: ChainLike,
    wallet_address: str,
) -> str:
    """
    sha256 over the canonical content of an event.

    Same event seen twice (overlapping polls, retried cycle) gives the
    same fingerprint.
    """
    content = {
        "blockchain": _chain_value(chain),
        "walletAddress": wallet_address,
        "transactionType": event.transaction_type.value,
        **event.to_dict(),
    }
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def event_to_record(
    event: CanonicalEvent,
    chain: ChainLike,
    wallet_address: str,
) -> TransactionRecord:
    """Map a canonical event onto a transactions row."""
    record = TransactionRecord(
        fingerprint=event_fingerprint(event, chain, wallet_address),
        blockchain=_chain_value(chain),
        transaction_type=event.transaction_type.value,
        transaction_hash=event.transaction_hash,
        block_height=event.block_height,
        timestamp=event.timestamp,
        wallet_address=wallet_address,
    )

    if isinstance(event, TokenTransfer):
        record.token_address = event.token_address
        record.token_name = event.token_name
        record.token_symbol = event.token_symbol
        record.amount = event.amount
        record.decimals = event.decimals
        record.from_address = event.from_address
        record.to_address = event.to_address
    else:
        record.token_in_address = event.token_in_address
        record.token_in_name = event.token_in_name
        record.token_in_symbol = event.token_in_symbol
        record.amount_in = event.amount_in
        record.decimals_in = event.decimals_in
        record.token_out_address = event.token_out_address
        record.token_out_name = event.token_out_name
        record.token_out_symbol = event.token_out_symbol
        record.amount_out = event.amount_out
        record.decimals_out = event.decimals_out
        record.exchange_address = event.exchange_address
        record.exchange_name = event.exchange_name

    return record


@dataclass
class EventPage:
    """One page of transaction rows plus pagination totals."""
    items: list[TransactionRecord] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 50

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
        }


class PersistenceGateway:
    """
    Storage operations for the tracking orchestrator and the API.

    Usage:
        gateway = PersistenceGateway(database)
        await gateway.upsert_cursor("0xabc", Chain.APTOS, 4000, active=True)
        cursor = await gateway.find_active_cursor("0xabc", Chain.APTOS)
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    @property
    def database(self) -> Database:
        return self._database

    @staticmethod
    def _cursor_query(address: str, chain: ChainLike):
        return select(TrackedWallet).where(
            TrackedWallet.address == address,
            TrackedWallet.blockchain == _chain_value(chain),
        )

    async def _get_cursor(
        self,
        session: AsyncSession,
        address: str,
        chain: ChainLike,
    ) -> Optional[TrackedWallet]:
        result = await session.execute(self._cursor_query(address, chain))
        return result.scalar_one_or_none()

    # =========================================================
    # CURSORS
    # =========================================================

    async def upsert_cursor(
        self,
        address: str,
        chain: ChainLike,
        height: Optional[int],
        active: bool = True,
    ) -> TrackedWallet:
        """Insert the (address, chain) cursor or overwrite it in place."""
        async with self._database.transaction_scope("upsert_cursor") as session:
            wallet = await self._get_cursor(session, address, chain)

            if wallet is None:
                wallet = TrackedWallet(
                    address=address,
                    blockchain=_chain_value(chain),
                    last_processed_block=height,
                    is_active=active,
                )
                session.add(wallet)
                logger.debug(f"Created cursor {address} on {_chain_value(chain)} at {height}")
            else:
                wallet.last_processed_block = height
                wallet.is_active = active

            await session.flush()
            return wallet

    async def find_active_cursor(
        self,
        address: str,
        chain: ChainLike,
    ) -> Optional[TrackedWallet]:
        stmt = self._cursor_query(address, chain).where(TrackedWallet.is_active.is_(True))
        async with self._database.transaction_scope("find_active_cursor") as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def advance_cursor(
        self,
        address: str,
        chain: ChainLike,
        height: int,
    ) -> Optional[TrackedWallet]:
        """
        Move the cursor forward to height.

        Never moves backwards and never touches is_active, so a wallet
        stopped mid-cycle stays stopped. Returns None if no row exists.
        """
        async with self._database.transaction_scope("advance_cursor") as session:
            wallet = await self._get_cursor(session, address, chain)
            if wallet is None:
                return None

            current = wallet.last_processed_block
            if current is None or height > current:
                wallet.last_processed_block = height
            await session.flush()
            return wallet

    async def deactivate(self, address: str, chain: ChainLike) -> bool:
        """Mark a wallet stopped. Returns False if it was never tracked."""
        async with self._database.transaction_scope("deactivate") as session:
            wallet = await self._get_cursor(session, address, chain)
            if wallet is None:
                return False
            wallet.is_active = False
            return True

    async def list_wallets(self, chain: Optional[ChainLike] = None) -> list[TrackedWallet]:
        """All tracked wallets, newest first."""
        stmt = select(TrackedWallet)
        if chain is not None:
            stmt = stmt.where(TrackedWallet.blockchain == _chain_value(chain))
        stmt = stmt.order_by(TrackedWallet.created_at.desc(), TrackedWallet.id.desc())

        async with self._database.transaction_scope("list_wallets") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # =========================================================
    # EVENTS
    # =========================================================

    async def insert_events(
        self,
        events: Sequence[CanonicalEvent],
        chain: ChainLike,
        wallet_address: str,
    ) -> int:
        """
        Bulk insert events in one transaction.

        Fingerprints already stored, or repeated within the batch, are
        skipped. A rejected batch is rolled back entirely.

        Returns:
            Number of rows inserted
        """
        if not events:
            return 0

        records: dict[str, TransactionRecord] = {}
        for event in events:
            record = event_to_record(event, chain, wallet_address)
            records.setdefault(record.fingerprint, record)

        async with self._database.transaction_scope("insert_events") as session:
            result = await session.execute(
                select(TransactionRecord.fingerprint).where(
                    TransactionRecord.fingerprint.in_(list(records))
                )
            )
            existing = set(result.scalars().all())
            fresh = [r for fp, r in records.items() if fp not in existing]
            session.add_all(fresh)

        skipped = len(events) - len(fresh)
        if skipped:
            logger.debug(f"Skipped {skipped} already stored events for {wallet_address}")
        return len(fresh)

    def _events_filter(
        self,
        stmt: Any,
        address: str,
        chain: Optional[ChainLike],
        kind: Optional[Union[TransactionType, str]],
    ) -> Any:
        stmt = stmt.where(TransactionRecord.wallet_address == address)
        if chain is not None:
            stmt = stmt.where(TransactionRecord.blockchain == _chain_value(chain))
        if kind is not None:
            stmt = stmt.where(TransactionRecord.transaction_type == _kind_value(kind))
        return stmt

    async def count_events(
        self,
        address: str,
        chain: Optional[ChainLike] = None,
        kind: Optional[Union[TransactionType, str]] = None,
    ) -> int:
        stmt = self._events_filter(
            select(func.count()).select_from(TransactionRecord), address, chain, kind
        )
        async with self._database.transaction_scope("count_events") as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def list_events(
        self,
        address: str,
        chain: Optional[ChainLike] = None,
        kind: Optional[Union[TransactionType, str]] = None,
        page: int = 1,
        limit: int = 50,
    ) -> EventPage:
        """Events for a wallet, newest timestamp first, one page at a time."""
        page = max(page, 1)
        limit = max(limit, 1)

        stmt = self._events_filter(select(TransactionRecord), address, chain, kind)
        stmt = (
            stmt.order_by(TransactionRecord.timestamp.desc(), TransactionRecord.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        async with self._database.transaction_scope("list_events") as session:
            result = await session.execute(stmt)
            items = list(result.scalars().all())

        total = await self.count_events(address, chain, kind)
        return EventPage(items=items, total=total, page=page, limit=limit)
