"""
Adapter Registry Tests.
"""

import pytest

from wallet_tracker.adapters import (
    AdapterRegistry,
    AptosAdapter,
    MovementAdapter,
    SuiAdapter,
)
from wallet_tracker.config import WalletTrackerConfig
from wallet_tracker.exceptions import UnsupportedChainError, WalletTrackerError
from wallet_tracker.models import Chain

from tests.wallet_tracker.conftest import StubAdapter


class TestAdapterRegistry:
    """Tests for AdapterRegistry."""

    def test_from_config_builds_all_chains(self):
        registry = AdapterRegistry.from_config(WalletTrackerConfig())

        assert isinstance(registry.resolve(Chain.APTOS), AptosAdapter)
        assert isinstance(registry.resolve(Chain.SUI), SuiAdapter)
        assert isinstance(registry.resolve(Chain.MOVEMENT), MovementAdapter)
        assert set(registry.supported_chains()) == set(Chain)

    def test_resolve_accepts_string(self):
        registry = AdapterRegistry.from_config(WalletTrackerConfig())

        assert registry.resolve("sui").chain == Chain.SUI

    def test_resolve_returns_same_instance(self):
        registry = AdapterRegistry.from_config(WalletTrackerConfig())

        assert registry.resolve("aptos") is registry.resolve(Chain.APTOS)

    def test_unknown_chain_raises(self):
        registry = AdapterRegistry.from_config(WalletTrackerConfig())

        with pytest.raises(UnsupportedChainError) as exc_info:
            registry.resolve("ethereum")

        assert exc_info.value.requested == "ethereum"
        assert "ethereum" in exc_info.value.message
        assert isinstance(exc_info.value, WalletTrackerError)
        assert exc_info.value.timestamp.tzinfo is not None
        assert exc_info.value.to_dict()["timestamp"].endswith("+00:00")

    def test_disabled_chain_raises(self):
        config = WalletTrackerConfig()
        config.chains[Chain.MOVEMENT].enabled = False
        registry = AdapterRegistry.from_config(config)

        assert Chain.MOVEMENT not in registry
        with pytest.raises(UnsupportedChainError):
            registry.resolve(Chain.MOVEMENT)

    def test_register_replaces_existing(self):
        registry = AdapterRegistry()
        first = StubAdapter(Chain.SUI)
        second = StubAdapter(Chain.SUI)

        registry.register(first)
        registry.register(second)

        assert registry.resolve(Chain.SUI) is second

    def test_stats_per_chain(self):
        registry = AdapterRegistry()
        registry.register(StubAdapter(Chain.APTOS))

        stats = registry.get_stats()

        assert stats["aptos"]["chain"] == "aptos"
        assert stats["aptos"]["total_requests"] == 0
