"""
Chain Adapter Tests.

============================================================
PURPOSE
============================================================
Parsing tests for the Aptos, Movement and Sui adapters against
recorded-shape API responses. HTTP is stubbed at _request_json.

TEST CATEGORIES:
- Token type extraction
- Height queries
- Transfer / swap detection
- Malformed entries are skipped, failed calls raise
============================================================
"""

import pytest
from unittest.mock import AsyncMock, patch

from wallet_tracker.adapters import (
    AptosAdapter,
    MovementAdapter,
    SuiAdapter,
    extract_token_type,
)
from wallet_tracker.config import ChainConfig
from wallet_tracker.exceptions import UpstreamUnavailableError
from wallet_tracker.models import Chain


WALLET = "0xwallet"
TS_MICROS = "1714564800000000"
TS_MILLIS = "1714564800000"


@pytest.fixture
def aptos():
    return AptosAdapter(ChainConfig(chain=Chain.APTOS, api_url="https://aptos.test/v1/"))


@pytest.fixture
def movement():
    return MovementAdapter(ChainConfig(chain=Chain.MOVEMENT, api_url="https://movement.test"))


@pytest.fixture
def sui():
    return SuiAdapter(ChainConfig(chain=Chain.SUI, api_url="https://sui.test"))


def rpc(result):
    return {"jsonrpc": "2.0", "id": 1, "result": result}


# ============================================================
# TOKEN TYPE EXTRACTION
# ============================================================

class TestExtractTokenType:
    """Tests for extract_token_type."""

    def test_generic_argument_wins(self):
        assert (
            extract_token_type("0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>")
            == "0x1::aptos_coin::AptosCoin"
        )

    def test_deposit_event_type(self):
        assert (
            extract_token_type("0x1::coin::CoinDeposited<0xabc::usdc::USDC>")
            == "0xabc::usdc::USDC"
        )

    def test_no_generic_uses_address_segment(self):
        assert extract_token_type("0x1::coin::TransferEvent") == "0x1"

    def test_bare_address(self):
        assert extract_token_type("0xabc") == "0xabc"

    def test_nested_generic_takes_first_segment(self):
        assert (
            extract_token_type("0x1::coin::CoinStore<0x2::lp::LP<0x1::a::A, 0x2::b::B>>")
            == "0x2::lp::LP"
        )


# ============================================================
# APTOS
# ============================================================

def aptos_outgoing(tx_hash="0xa", version="4100"):
    return {
        "type": "user_transaction",
        "hash": tx_hash,
        "version": version,
        "timestamp": TS_MICROS,
        "sender": WALLET,
        "payload": {
            "type": "0x1::coin::transfer",
            "function": "0x1::coin::transfer",
            "arguments": ["0xbob", "250"],
        },
        "events": [],
    }


def aptos_incoming(tx_hash="0xb", version="4200"):
    return {
        "type": "user_transaction",
        "hash": tx_hash,
        "version": version,
        "timestamp": TS_MICROS,
        "sender": "0xalice",
        "receiver": "0xWALLET",
        "payload": {"type": "entry_function_payload"},
        "events": [
            {
                "type": "0x1::coin::CoinDeposited<0x1::aptos_coin::AptosCoin>",
                "data": {"amount": "900"},
            },
        ],
    }


def aptos_swap(tx_hash="0xs", version="4300"):
    return {
        "type": "user_transaction",
        "hash": tx_hash,
        "version": version,
        "timestamp": TS_MICROS,
        "sender": WALLET,
        "payload": {"type": "entry_function_payload", "function": "0xdex::router::swap"},
        "events": [
            {"type": "0xdex::pool::SwapEvent", "data": {}},
            {
                "type": "0x1::coin::WithdrawEvent<0x1::aptos_coin::AptosCoin>",
                "data": {"amount": "500"},
            },
            {
                "type": "0x1::coin::DepositEvent<0xabc::usdc::USDC>",
                "data": {"amount": "42"},
            },
        ],
    }


class TestAptosAdapter:
    """Tests for AptosAdapter."""

    @pytest.mark.asyncio
    async def test_current_height(self, aptos):
        with patch.object(aptos, "_request_json", AsyncMock(return_value={"block_height": "5000"})) as mock:
            height = await aptos.current_height()

        assert height == 5000
        mock.assert_awaited_once_with("GET", "https://aptos.test/v1/blocks/by_height/latest")

    @pytest.mark.asyncio
    async def test_current_height_bad_body_raises(self, aptos):
        with patch.object(aptos, "_request_json", AsyncMock(return_value={"oops": 1})):
            with pytest.raises(UpstreamUnavailableError):
                await aptos.current_height()

    @pytest.mark.asyncio
    async def test_transfers_outgoing_and_incoming(self, aptos):
        transactions = [
            aptos_outgoing(),
            aptos_incoming(),
            {"type": "block_metadata_transaction", "version": "4150"},
        ]
        with patch.object(aptos, "_request_json", AsyncMock(return_value=transactions)) as mock:
            transfers = await aptos.token_transfers(WALLET, 4000, 5000)

        mock.assert_awaited_once_with(
            "GET",
            "https://aptos.test/v1/accounts/0xwallet/transactions",
            params={"start": 4000, "limit": 100},
        )
        assert len(transfers) == 2

        outgoing, incoming = transfers
        assert outgoing.from_address == WALLET
        assert outgoing.to_address == "0xbob"
        assert outgoing.amount == "250"
        assert outgoing.token_address == "0x1"
        assert outgoing.block_height == 4100
        assert outgoing.timestamp.year == 2024

        assert incoming.from_address == "0xalice"
        assert incoming.to_address == WALLET
        assert incoming.amount == "900"
        assert incoming.token_address == "0x1::aptos_coin::AptosCoin"

    @pytest.mark.asyncio
    async def test_range_is_start_scoped(self, aptos):
        # Versions past to_block are still returned; only start is sent
        transactions = [aptos_outgoing(version="9000"), aptos_swap(version="9100")]
        with patch.object(aptos, "_request_json", AsyncMock(return_value=transactions)) as mock:
            transfers = await aptos.token_transfers(WALLET, 4000, 5000)
            swaps = await aptos.token_swaps(WALLET, 4000, 5000)

        for call in mock.await_args_list:
            assert call.kwargs["params"] == {"start": 4000, "limit": 100}
        assert [t.block_height for t in transfers] == [9000]
        assert len(swaps) == 1

    @pytest.mark.asyncio
    async def test_malformed_transaction_is_skipped(self, aptos):
        broken = aptos_outgoing(tx_hash="0xbroken")
        del broken["payload"]["arguments"]

        with patch.object(aptos, "_request_json", AsyncMock(return_value=[broken, aptos_incoming()])):
            transfers = await aptos.token_transfers(WALLET, 4000)

        assert [t.transaction_hash for t in transfers] == ["0xb"]
        assert aptos.get_stats()["parse_errors"] == 1

    @pytest.mark.asyncio
    async def test_call_failure_raises(self, aptos):
        error = UpstreamUnavailableError("down", chain=Chain.APTOS)
        with patch.object(aptos, "_request_json", AsyncMock(side_effect=error)):
            with pytest.raises(UpstreamUnavailableError):
                await aptos.token_transfers(WALLET, 4000)

    @pytest.mark.asyncio
    async def test_non_list_body_raises(self, aptos):
        with patch.object(aptos, "_request_json", AsyncMock(return_value={"message": "not found"})):
            with pytest.raises(UpstreamUnavailableError):
                await aptos.token_swaps(WALLET, 4000)

    @pytest.mark.asyncio
    async def test_swap_detection(self, aptos):
        with patch.object(aptos, "_request_json", AsyncMock(return_value=[aptos_swap(), aptos_outgoing()])):
            swaps = await aptos.token_swaps(WALLET, 4000, 5000)

        assert len(swaps) == 1
        swap = swaps[0]
        assert swap.token_in_address == "0x1::aptos_coin::AptosCoin"
        assert swap.amount_in == "500"
        assert swap.token_out_address == "0xabc::usdc::USDC"
        assert swap.amount_out == "42"
        assert swap.exchange_address == "0xdex"
        assert swap.wallet_address == WALLET
        assert swap.block_height == 4300

    @pytest.mark.asyncio
    async def test_swap_event_without_both_legs_is_ignored(self, aptos):
        tx = aptos_swap()
        tx["events"] = tx["events"][:2]

        with patch.object(aptos, "_request_json", AsyncMock(return_value=[tx])):
            swaps = await aptos.token_swaps(WALLET, 4000)

        assert swaps == []


# ============================================================
# MOVEMENT
# ============================================================

class TestMovementAdapter:
    """Tests for MovementAdapter."""

    @pytest.mark.asyncio
    async def test_uses_v1_prefix(self, movement):
        with patch.object(movement, "_request_json", AsyncMock(return_value={"block_height": "77"})) as mock:
            assert await movement.current_height() == 77

        mock.assert_awaited_once_with("GET", "https://movement.test/v1/blocks/by_height/latest")

    @pytest.mark.asyncio
    async def test_transfers(self, movement):
        outgoing = aptos_outgoing()
        outgoing["payload"] = {
            "type": "entry_function_payload",
            "function": "0x1::coin::transfer",
            "arguments": ["0xbob", "10"],
        }
        incoming = {
            "type": "user_transaction",
            "hash": "0xin",
            "version": "4400",
            "timestamp": TS_MICROS,
            "sender": "0xalice",
            "payload": {"type": "entry_function_payload", "function": "0xapp::vault::claim"},
            "events": [
                {
                    "type": "0x1::coin::DepositEvent<0x1::aptos_coin::AptosCoin>",
                    "data": {"amount": "7"},
                },
                {
                    "type": "0x1::coin::DepositEvent<0x1::aptos_coin::AptosCoin>",
                    "data": {"amount": "3", "to": "0xsomeoneelse"},
                },
            ],
        }

        with patch.object(movement, "_request_json", AsyncMock(return_value=[outgoing, incoming])):
            transfers = await movement.token_transfers(WALLET, 4000)

        assert len(transfers) == 2
        assert transfers[0].to_address == "0xbob"
        assert transfers[0].amount == "10"
        assert transfers[1].from_address == "0xalice"
        assert transfers[1].to_address == WALLET
        assert transfers[1].amount == "7"

    @pytest.mark.asyncio
    async def test_swap_requires_swap_entry_function(self, movement):
        swap_tx = aptos_swap()
        swap_tx["payload"] = {
            "type": "entry_function_payload",
            "function": "0xdex::router::swap_exact_in",
        }
        not_a_swap = aptos_swap(tx_hash="0xnot")
        not_a_swap["payload"] = {
            "type": "entry_function_payload",
            "function": "0x1::coin::transfer",
        }

        with patch.object(movement, "_request_json", AsyncMock(return_value=[swap_tx, not_a_swap])):
            swaps = await movement.token_swaps(WALLET, 4000)

        assert len(swaps) == 1
        assert swaps[0].exchange_address == "0xdex"
        assert swaps[0].transaction_hash == "0xs"


# ============================================================
# SUI
# ============================================================

def balance_change(change_type, coin_type, amount, owner=WALLET, **extra):
    return {
        "type": "0x2::coin::CoinBalanceChange",
        "fields": {
            "changeType": change_type,
            "coinType": coin_type,
            "amount": amount,
            "owner": owner,
            **extra,
        },
    }


def sui_tx(digest, checkpoint, events, transaction=None):
    tx = {
        "digest": digest,
        "checkpoint": checkpoint,
        "timestampMs": TS_MILLIS,
        "events": events,
    }
    if transaction is not None:
        tx["transaction"] = {"data": {"transaction": transaction}}
    return tx


class TestSuiAdapter:
    """Tests for SuiAdapter."""

    @pytest.mark.asyncio
    async def test_current_height_is_checkpoint(self, sui):
        with patch.object(sui, "_request_json", AsyncMock(return_value=rpc("123456"))) as mock:
            assert await sui.current_height() == 123456

        method, url = mock.await_args.args
        payload = mock.await_args.kwargs["payload"]
        assert (method, url) == ("POST", "https://sui.test")
        assert payload["method"] == "sui_getLatestCheckpointSequenceNumber"
        assert payload["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self, sui):
        body = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "boom"}}
        with patch.object(sui, "_request_json", AsyncMock(return_value=body)):
            with pytest.raises(UpstreamUnavailableError, match="boom"):
                await sui.current_height()

    @pytest.mark.asyncio
    async def test_transfers_respect_checkpoint_range(self, sui):
        transactions = [
            sui_tx("D1", "150", [
                balance_change("Receive", "0x2::sui::SUI", "1000", sender="0xalice"),
                balance_change("Gas", "0x2::sui::SUI", "-5"),
            ]),
            sui_tx("D2", "90", [balance_change("Receive", "0x2::sui::SUI", "1")]),
            sui_tx("D3", "250", [balance_change("Pay", "0x2::sui::SUI", "2", recipient="0xbob")]),
        ]

        with patch.object(sui, "_request_json", AsyncMock(return_value=rpc({"data": transactions}))) as mock:
            transfers = await sui.token_transfers(WALLET, 100, 200)

        assert [t.transaction_hash for t in transfers] == ["D1"]
        transfer = transfers[0]
        assert transfer.from_address == "0xalice"
        assert transfer.to_address == WALLET
        assert transfer.amount == "1000"
        assert transfer.token_address == "0x2::sui::SUI"
        assert transfer.block_height == 150

        payload = mock.await_args.kwargs["payload"]
        assert payload["method"] == "suix_queryTransactionBlocks"
        assert payload["params"][0]["filter"] == {"FromOrTo": WALLET}
        assert payload["params"][2] == 100

    @pytest.mark.asyncio
    async def test_open_range_includes_later_checkpoints(self, sui):
        transactions = [
            sui_tx("D3", "250", [balance_change("Pay", "0x2::sui::SUI", "2", recipient="0xbob")]),
        ]
        with patch.object(sui, "_request_json", AsyncMock(return_value=rpc({"data": transactions}))):
            transfers = await sui.token_transfers(WALLET, 100)

        assert len(transfers) == 1
        assert transfers[0].from_address == WALLET
        assert transfers[0].to_address == "0xbob"

    @pytest.mark.asyncio
    async def test_malformed_transaction_is_skipped(self, sui):
        broken = sui_tx("BAD", "150", [])
        del broken["checkpoint"]
        transactions = [broken, sui_tx("D1", "150", [balance_change("Receive", "0x2::sui::SUI", "9")])]

        with patch.object(sui, "_request_json", AsyncMock(return_value=rpc({"data": transactions}))):
            transfers = await sui.token_transfers(WALLET, 100, 200)

        assert [t.transaction_hash for t in transfers] == ["D1"]
        assert sui.get_stats()["parse_errors"] == 1

    @pytest.mark.asyncio
    async def test_swap_detection_uses_first_legs(self, sui):
        programmable = {
            "kind": "ProgrammableTransaction",
            "transactions": [
                {"SplitCoins": ["GasCoin", [{"Input": 0}]]},
                {"MoveCall": {"package": "0xcetus", "module": "router", "function": "swap_a_b"}},
            ],
        }
        events = [
            balance_change("Pay", "0x2::sui::SUI", "100", owner="0xpool"),
            balance_change("Pay", "0x2::sui::SUI", "100"),
            balance_change("Receive", "0xusdc::usdc::USDC", "55"),
            balance_change("Receive", "0xusdc::usdc::USDC", "1"),
        ]
        plain = sui_tx("P1", "160", [balance_change("Pay", "0x2::sui::SUI", "3")], {
            "kind": "ProgrammableTransaction",
            "transactions": [{"MoveCall": {"package": "0x2", "module": "pay", "function": "split"}}],
        })

        with patch.object(
            sui, "_request_json",
            AsyncMock(return_value=rpc({"data": [sui_tx("S1", "150", events, programmable), plain]})),
        ):
            swaps = await sui.token_swaps(WALLET, 100, 200)

        assert len(swaps) == 1
        swap = swaps[0]
        assert swap.token_in_address == "0x2::sui::SUI"
        assert swap.amount_in == "100"
        assert swap.token_out_address == "0xusdc::usdc::USDC"
        assert swap.amount_out == "55"
        assert swap.exchange_address == "0xcetus"
        assert swap.block_height == 150
