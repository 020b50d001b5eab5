"""
Movement Chain Adapter - Movement fullnode REST API.

Movement is an Aptos fork, so the wire format matches Aptos; the
differences are the /v1 path prefix and the transfer/swap predicates.
"""

import logging
from typing import Any, Optional

from ..models import Chain, TokenTransfer
from .aptos import AptosAdapter
from .base import extract_token_type, timestamp_from_micros


logger = logging.getLogger(__name__)


ENTRY_FUNCTION_PAYLOAD = "entry_function_payload"


class MovementAdapter(AptosAdapter):
    """
    Movement adapter.

    - outgoing transfers: entry function calls to coin::transfer or
      coin::transfer_coins
    - incoming transfers: CoinDeposited/DepositEvent events whose
      recipient (data.to, defaulting to the wallet) is the wallet
    - swaps: only for entry functions named ::swap or ::exchange that
      also emitted a swap/exchange event
    """

    API_PREFIX = "/v1"

    @property
    def chain(self) -> Chain:
        return Chain.MOVEMENT

    def _is_outgoing_transfer(self, payload: dict[str, Any]) -> bool:
        if payload.get("type") != ENTRY_FUNCTION_PAYLOAD:
            return False
        function = payload.get("function") or ""
        return "::coin::transfer" in function or "::coin::transfer_coins" in function

    def _is_deposit_event(self, event_type: str) -> bool:
        return "CoinDeposited" in event_type or "DepositEvent" in event_type

    def _incoming_transfers(
        self,
        tx: dict[str, Any],
        address: str,
    ) -> list[TokenTransfer]:
        transfers: list[TokenTransfer] = []

        for event in tx.get("events") or []:
            event_type = event["type"]
            if not self._is_deposit_event(event_type):
                continue

            data = event["data"]
            to_address = data.get("to") or address
            if to_address.lower() != address.lower():
                continue

            transfers.append(
                TokenTransfer(
                    token_address=extract_token_type(event_type),
                    amount=str(data["amount"]),
                    from_address=tx["sender"],
                    to_address=to_address,
                    timestamp=timestamp_from_micros(tx["timestamp"]),
                    transaction_hash=tx["hash"],
                    block_height=int(tx["version"]),
                )
            )
        return transfers

    def _exchange_address(
        self,
        tx: dict[str, Any],
        events: list[dict[str, Any]],
    ) -> Optional[str]:
        payload = tx.get("payload") or {}
        if payload.get("type") != ENTRY_FUNCTION_PAYLOAD:
            return None

        function = payload.get("function") or ""
        if "::swap" not in function and "::exchange" not in function:
            return None

        has_swap_event = any(
            "swap" in e["type"].lower() or "exchange" in e["type"].lower()
            for e in events
        )
        if not has_swap_event:
            return None

        return function.split("::")[0]
