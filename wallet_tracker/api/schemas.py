"""
Pydantic Schemas for the Wallet Tracking API.

Field names follow the JSON contract (camelCase).
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================
# REQUESTS
# =============================================================

class WalletRequest(BaseModel):
    """
    Body of track / stop-tracking requests.

    Both fields are optional at the schema level so missing values get
    the API's own 400 message instead of a 422.
    """
    walletAddress: Optional[str] = None
    blockchain: Optional[str] = None


# =============================================================
# RESPONSES
# =============================================================

class OperationResponse(BaseModel):
    success: bool
    message: str


class WalletSchema(BaseModel):
    id: int
    address: str
    blockchain: str
    lastProcessedBlock: Optional[int] = None
    isActive: bool
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class WalletListResponse(BaseModel):
    success: bool = True
    data: List[WalletSchema] = Field(default_factory=list)


class PaginationSchema(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class TransactionListResponse(BaseModel):
    """Transfers and swaps share one list; keys depend on transactionType."""
    success: bool = True
    data: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: PaginationSchema


class HealthResponse(BaseModel):
    status: str
