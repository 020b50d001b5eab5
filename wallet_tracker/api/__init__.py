"""HTTP API for wallet tracking."""

from .router import router

__all__ = ["router"]
