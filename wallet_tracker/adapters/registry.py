"""
Chain Adapter Registry - Resolves a chain identifier to its adapter.

The chain set is closed: adding a chain means adding an adapter class to
ADAPTER_CLASSES. Anything else fails loudly with UnsupportedChainError.
"""

import logging
from typing import Any, Optional, Union

import aiohttp

from ..config import WalletTrackerConfig
from ..exceptions import UnsupportedChainError
from ..models import Chain
from .aptos import AptosAdapter
from .base import BaseChainAdapter
from .movement import MovementAdapter
from .sui import SuiAdapter


logger = logging.getLogger(__name__)


ADAPTER_CLASSES: dict[Chain, type[BaseChainAdapter]] = {
    Chain.APTOS: AptosAdapter,
    Chain.SUI: SuiAdapter,
    Chain.MOVEMENT: MovementAdapter,
}


class AdapterRegistry:
    """
    Holds one adapter instance per supported chain.

    Usage:
        registry = AdapterRegistry.from_config(config)
        adapter = registry.resolve("sui")
        height = await adapter.current_height()
    """

    def __init__(self) -> None:
        self._adapters: dict[Chain, BaseChainAdapter] = {}

    @classmethod
    def from_config(
        cls,
        config: WalletTrackerConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "AdapterRegistry":
        """Build adapters for every enabled chain."""
        registry = cls()
        for chain in config.get_enabled_chains():
            adapter_class = ADAPTER_CLASSES.get(chain)
            if adapter_class is None:
                raise UnsupportedChainError(chain)
            registry.register(adapter_class(config.chains[chain], session=session))
        return registry

    def register(self, adapter: BaseChainAdapter) -> None:
        """Register an adapter under its chain."""
        if adapter.chain in self._adapters:
            logger.warning(f"Adapter for '{adapter.chain.value}' already registered, replacing")
        self._adapters[adapter.chain] = adapter
        logger.info(f"Registered chain adapter '{adapter.chain.value}'")

    def resolve(self, chain: Union[Chain, str, Any]) -> BaseChainAdapter:
        """
        Get the adapter for a chain.

        Raises:
            UnsupportedChainError: unknown chain value or no adapter registered
        """
        if not isinstance(chain, Chain):
            try:
                chain = Chain(chain)
            except ValueError:
                raise UnsupportedChainError(chain) from None

        adapter = self._adapters.get(chain)
        if adapter is None:
            raise UnsupportedChainError(chain)
        return adapter

    def supported_chains(self) -> list[Chain]:
        return list(self._adapters.keys())

    def __contains__(self, chain: Chain) -> bool:
        return chain in self._adapters

    def get_stats(self) -> dict[str, Any]:
        return {
            chain.value: adapter.get_stats()
            for chain, adapter in self._adapters.items()
        }

    async def close(self) -> None:
        """Close all adapter sessions."""
        for adapter in self._adapters.values():
            await adapter.close()
