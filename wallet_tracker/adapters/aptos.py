"""
Aptos Chain Adapter - Aptos fullnode REST API.

Height comes from the latest block endpoint; transfers and swaps are
read from the wallet's own transaction list. The configured base URL
already carries the /v1 prefix.
"""

import logging
from typing import Any, Optional

from ..models import Chain, TokenSwap, TokenTransfer
from .base import (
    PARSE_ERRORS,
    BaseChainAdapter,
    extract_token_type,
    timestamp_from_micros,
)


logger = logging.getLogger(__name__)


USER_TRANSACTION = "user_transaction"
COIN_TRANSFER_PAYLOAD = "0x1::coin::transfer"


class AptosAdapter(BaseChainAdapter):
    """
    Aptos adapter.

    Transfer detection runs two independent paths per transaction:
    - outgoing: the wallet's own coin transfer call payload
    - incoming: deposit events on transactions received by the wallet

    Swap detection is heuristic: a swap-named event plus the first
    withdraw event (token in) and first deposit event (token out).

    Ranges are start-scoped only. The account listing is keyed by ledger
    version, not block height, so to_block is ignored and one page
    starting at from_block is returned.
    """

    # Path prefix appended to the configured API URL
    API_PREFIX = ""

    @property
    def chain(self) -> Chain:
        return Chain.APTOS

    def _url(self, path: str) -> str:
        return f"{self.api_url}{self.API_PREFIX}{path}"

    async def current_height(self) -> int:
        data = await self._request_json("GET", self._url("/blocks/by_height/latest"))
        try:
            return int(data["block_height"])
        except PARSE_ERRORS as e:
            raise self._unexpected_response("block height", e) from e

    async def _fetch_account_transactions(
        self,
        address: str,
        from_block: int,
    ) -> list[dict[str, Any]]:
        """Account transactions starting at from_block, one page."""
        data = await self._request_json(
            "GET",
            self._url(f"/accounts/{address}/transactions"),
            params={"start": from_block, "limit": self.page_limit},
        )
        if not isinstance(data, list):
            raise self._unexpected_response(
                "transaction list", TypeError(type(data).__name__)
            )
        return data

    # ─────────────────────────────────────────────────────────────
    # Transfers
    # ─────────────────────────────────────────────────────────────

    async def token_transfers(
        self,
        address: str,
        from_block: int,
        to_block: Optional[int] = None,
    ) -> list[TokenTransfer]:
        transactions = await self._fetch_account_transactions(address, from_block)
        transfers: list[TokenTransfer] = []

        for tx in transactions:
            if not isinstance(tx, dict) or tx.get("type") != USER_TRANSACTION:
                continue

            try:
                outgoing = self._outgoing_transfer(tx, address)
                if outgoing:
                    transfers.append(outgoing)
            except PARSE_ERRORS as e:
                self._record_parse_error("transfer transaction", tx.get("hash"), e)

            try:
                transfers.extend(self._incoming_transfers(tx, address))
            except PARSE_ERRORS as e:
                self._record_parse_error("deposit event", tx.get("hash"), e)

        self._stats["transfers_found"] += len(transfers)
        return transfers

    def _is_outgoing_transfer(self, payload: dict[str, Any]) -> bool:
        return payload.get("type") == COIN_TRANSFER_PAYLOAD

    def _is_deposit_event(self, event_type: str) -> bool:
        return "CoinDeposited" in event_type

    def _outgoing_transfer(
        self,
        tx: dict[str, Any],
        address: str,
    ) -> Optional[TokenTransfer]:
        payload = tx.get("payload") or {}
        if not self._is_outgoing_transfer(payload):
            return None

        arguments = payload["arguments"]
        return TokenTransfer(
            token_address=payload["function"].split("::")[0],
            amount=str(arguments[1]),
            from_address=address,
            to_address=arguments[0],
            timestamp=timestamp_from_micros(tx["timestamp"]),
            transaction_hash=tx["hash"],
            block_height=int(tx["version"]),
        )

    def _incoming_transfers(
        self,
        tx: dict[str, Any],
        address: str,
    ) -> list[TokenTransfer]:
        receiver = tx.get("receiver") or ""
        if receiver.lower() != address.lower():
            return []

        transfers: list[TokenTransfer] = []
        for event in tx.get("events") or []:
            event_type = event["type"]
            if not self._is_deposit_event(event_type):
                continue
            transfers.append(
                TokenTransfer(
                    token_address=extract_token_type(event_type),
                    amount=str(event["data"]["amount"]),
                    from_address=tx["sender"],
                    to_address=address,
                    timestamp=timestamp_from_micros(tx["timestamp"]),
                    transaction_hash=tx["hash"],
                    block_height=int(tx["version"]),
                )
            )
        return transfers

    # ─────────────────────────────────────────────────────────────
    # Swaps
    # ─────────────────────────────────────────────────────────────

    async def token_swaps(
        self,
        address: str,
        from_block: int,
        to_block: Optional[int] = None,
    ) -> list[TokenSwap]:
        transactions = await self._fetch_account_transactions(address, from_block)
        swaps: list[TokenSwap] = []

        for tx in transactions:
            if not isinstance(tx, dict) or tx.get("type") != USER_TRANSACTION:
                continue
            try:
                swap = self._detect_swap(tx, address)
                if swap:
                    swaps.append(swap)
            except PARSE_ERRORS as e:
                self._record_parse_error("swap transaction", tx.get("hash"), e)

        self._stats["swaps_found"] += len(swaps)
        return swaps

    @staticmethod
    def _is_swap_event(event_type: str) -> bool:
        return (
            "swap" in event_type
            or "Swap" in event_type
            or "exchange" in event_type.lower()
        )

    @staticmethod
    def _is_withdraw_event(event_type: str) -> bool:
        return "Withdraw" in event_type or "withdraw" in event_type

    @staticmethod
    def _is_deposit_like_event(event_type: str) -> bool:
        return "Deposit" in event_type or "deposit" in event_type

    def _exchange_address(
        self,
        tx: dict[str, Any],
        events: list[dict[str, Any]],
    ) -> Optional[str]:
        """Exchange package address, or None when this is not a swap."""
        swap_event = next(
            (e for e in events if self._is_swap_event(e["type"])),
            None,
        )
        if swap_event is None:
            return None
        return swap_event["type"].split("::")[0]

    def _detect_swap(
        self,
        tx: dict[str, Any],
        address: str,
    ) -> Optional[TokenSwap]:
        events = tx.get("events") or []

        exchange_address = self._exchange_address(tx, events)
        if exchange_address is None:
            return None

        # Source order: first withdrawal is token in, first deposit is token out
        token_in_event = next(
            (e for e in events if self._is_withdraw_event(e["type"])), None
        )
        token_out_event = next(
            (e for e in events if self._is_deposit_like_event(e["type"])), None
        )
        if token_in_event is None or token_out_event is None:
            return None

        return TokenSwap(
            token_in_address=extract_token_type(token_in_event["type"]),
            amount_in=str(token_in_event["data"]["amount"]),
            token_out_address=extract_token_type(token_out_event["type"]),
            amount_out=str(token_out_event["data"]["amount"]),
            exchange_address=exchange_address,
            wallet_address=address,
            timestamp=timestamp_from_micros(tx["timestamp"]),
            transaction_hash=tx["hash"],
            block_height=int(tx["version"]),
        )
