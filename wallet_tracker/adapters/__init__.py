"""Chain adapters."""

from .aptos import AptosAdapter
from .base import BaseChainAdapter, extract_token_type
from .movement import MovementAdapter
from .registry import ADAPTER_CLASSES, AdapterRegistry
from .sui import SuiAdapter

__all__ = [
    "ADAPTER_CLASSES",
    "AdapterRegistry",
    "AptosAdapter",
    "BaseChainAdapter",
    "MovementAdapter",
    "SuiAdapter",
    "extract_token_type",
]
