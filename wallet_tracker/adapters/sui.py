"""
Sui Chain Adapter - Sui fullnode JSON-RPC.

Sui has no block height; the checkpoint sequence number stands in for it.
The transaction query is not range-scoped upstream, so each result is
checked against [from_block, to_block] here.
"""

import logging
from typing import Any, Optional

from ..exceptions import UpstreamUnavailableError
from ..models import Chain, TokenSwap, TokenTransfer
from .base import PARSE_ERRORS, BaseChainAdapter, timestamp_from_millis


logger = logging.getLogger(__name__)


BALANCE_CHANGE_EVENT = "CoinBalanceChange"
SWAP_FUNCTION_HINTS = ("swap", "exchange", "trade")


class SuiAdapter(BaseChainAdapter):
    """
    Sui adapter using the public fullnode RPC.

    Transfers: CoinBalanceChange events with changeType Pay or Receive.
    Swaps: programmable transactions calling a swap/exchange/trade
    function, with the wallet's first Pay balance change as token in and
    its first Receive balance change as token out.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._request_id = 0

    @property
    def chain(self) -> Chain:
        return Chain.SUI

    def _next_request_id(self) -> int:
        """Get next JSON-RPC request ID."""
        self._request_id += 1
        return self._request_id

    async def _rpc_call(
        self,
        method: str,
        params: list[Any],
    ) -> Any:
        """Make a JSON-RPC call to the Sui fullnode."""
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": method,
            "params": params,
        }

        data = await self._request_json("POST", self.api_url, payload=payload)

        if not isinstance(data, dict):
            raise self._unexpected_response(method, TypeError(type(data).__name__))

        if "error" in data:
            error = data["error"] or {}
            raise UpstreamUnavailableError(
                f"RPC error: {error.get('message', 'Unknown')}",
                chain=Chain.SUI,
                url=self.api_url,
                details=error if isinstance(error, dict) else {"error": error},
            )

        return data.get("result")

    async def current_height(self) -> int:
        result = await self._rpc_call("sui_getLatestCheckpointSequenceNumber", [])
        try:
            return int(result)
        except PARSE_ERRORS as e:
            raise self._unexpected_response("checkpoint", e) from e

    async def _query_transaction_blocks(self, address: str) -> list[dict[str, Any]]:
        """Most recent transaction blocks touching address, one page."""
        params = [
            {
                "filter": {"FromOrTo": address},
                "options": {
                    "showEffects": True,
                    "showInput": True,
                    "showEvents": True,
                },
            },
            None,
            self.page_limit,
            False,
        ]
        result = await self._rpc_call("suix_queryTransactionBlocks", params)

        try:
            return list(result.get("data") or [])
        except PARSE_ERRORS as e:
            raise self._unexpected_response("transaction list", e) from e

    def _in_range(
        self,
        tx: dict[str, Any],
        from_block: int,
        to_block: Optional[int],
    ) -> bool:
        checkpoint = int(tx["checkpoint"])
        if checkpoint < from_block:
            return False
        if to_block is not None and checkpoint > to_block:
            return False
        return True

    async def token_transfers(
        self,
        address: str,
        from_block: int,
        to_block: Optional[int] = None,
    ) -> list[TokenTransfer]:
        transactions = await self._query_transaction_blocks(address)
        transfers: list[TokenTransfer] = []

        for tx in transactions:
            try:
                if not self._in_range(tx, from_block, to_block):
                    continue
                transfers.extend(self._parse_transfers(tx, address))
            except PARSE_ERRORS as e:
                self._record_parse_error("transfer transaction", _digest(tx), e)

        self._stats["transfers_found"] += len(transfers)
        return transfers

    def _parse_transfers(
        self,
        tx: dict[str, Any],
        address: str,
    ) -> list[TokenTransfer]:
        transfers: list[TokenTransfer] = []

        for event in tx.get("events") or []:
            if BALANCE_CHANGE_EVENT not in event["type"]:
                continue

            fields = event["fields"]
            change_type = fields.get("changeType")

            # Only payments and receipts, not gas or other balance changes
            if change_type not in ("Receive", "Pay"):
                continue

            from_address = address if change_type == "Pay" else fields.get("sender")
            to_address = address if change_type == "Receive" else fields.get("recipient")

            transfers.append(
                TokenTransfer(
                    token_address=fields["coinType"],
                    amount=str(fields["amount"]),
                    from_address=from_address,
                    to_address=to_address,
                    timestamp=timestamp_from_millis(tx["timestampMs"]),
                    transaction_hash=tx["digest"],
                    block_height=int(tx["checkpoint"]),
                )
            )
        return transfers

    async def token_swaps(
        self,
        address: str,
        from_block: int,
        to_block: Optional[int] = None,
    ) -> list[TokenSwap]:
        transactions = await self._query_transaction_blocks(address)
        swaps: list[TokenSwap] = []

        for tx in transactions:
            try:
                if not self._in_range(tx, from_block, to_block):
                    continue
                swap = self._detect_swap(tx, address)
                if swap:
                    swaps.append(swap)
            except PARSE_ERRORS as e:
                self._record_parse_error("swap transaction", _digest(tx), e)

        self._stats["swaps_found"] += len(swaps)
        return swaps

    def _detect_swap(
        self,
        tx: dict[str, Any],
        address: str,
    ) -> Optional[TokenSwap]:
        inner = ((tx.get("transaction") or {}).get("data") or {}).get("transaction") or {}
        if inner.get("kind") != "ProgrammableTransaction":
            return None

        swap_command = None
        for command in inner.get("transactions") or []:
            move_call = command.get("MoveCall") if isinstance(command, dict) else None
            if not move_call:
                continue
            function = move_call.get("function") or ""
            if any(hint in function for hint in SWAP_FUNCTION_HINTS):
                swap_command = move_call
                break

        if swap_command is None:
            return None

        balance_changes = [
            e for e in tx.get("events") or []
            if BALANCE_CHANGE_EVENT in e["type"] and e["fields"].get("owner") == address
        ]
        token_in = next(
            (e for e in balance_changes if e["fields"].get("changeType") == "Pay"), None
        )
        token_out = next(
            (e for e in balance_changes if e["fields"].get("changeType") == "Receive"), None
        )
        if token_in is None or token_out is None:
            return None

        return TokenSwap(
            token_in_address=token_in["fields"]["coinType"],
            amount_in=str(token_in["fields"]["amount"]),
            token_out_address=token_out["fields"]["coinType"],
            amount_out=str(token_out["fields"]["amount"]),
            exchange_address=swap_command["package"],
            wallet_address=address,
            timestamp=timestamp_from_millis(tx["timestampMs"]),
            transaction_hash=tx["digest"],
            block_height=int(tx["checkpoint"]),
        )


def _digest(tx: Any) -> Any:
    return tx.get("digest") if isinstance(tx, dict) else None
