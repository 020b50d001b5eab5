"""
FastAPI Router for Wallet Tracking Endpoints.

Provides REST API for:
- Starting and stopping wallet tracking
- Listing tracked wallets
- Querying stored transfers and swaps
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from wallet_tracker.api.schemas import (
    OperationResponse,
    TransactionListResponse,
    WalletListResponse,
    WalletRequest,
)
from wallet_tracker.models import Chain, TransactionType
from wallet_tracker.persistence import PersistenceGateway
from wallet_tracker.service import WalletTrackingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wallets", tags=["Wallets"])


INVALID_CHAIN_MESSAGE = (
    f"Invalid blockchain. Supported blockchains: {', '.join(Chain.values())}"
)
INVALID_TYPE_MESSAGE = (
    f"Invalid transaction type. Supported types: {', '.join(TransactionType.values())}"
)


# =============================================================
# HELPERS
# =============================================================

def get_tracking_service(request: Request) -> WalletTrackingService:
    return request.app.state.container.service


def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.container.gateway


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


def _server_error(operation: str, error: Exception) -> JSONResponse:
    logger.error(f"Error in {operation}: {error}")
    return _error(500, "Server error")


def _validate_wallet_request(body: WalletRequest) -> Optional[JSONResponse]:
    if not body.walletAddress or not body.blockchain:
        return _error(400, "Wallet address and blockchain are required")
    if body.blockchain not in Chain.values():
        return _error(400, INVALID_CHAIN_MESSAGE)
    return None


# =============================================================
# TRACKING ENDPOINTS
# =============================================================

@router.post("/track", response_model=OperationResponse)
async def track_wallet(
    body: WalletRequest,
    service: WalletTrackingService = Depends(get_tracking_service),
):
    """Start tracking a wallet on a blockchain."""
    invalid = _validate_wallet_request(body)
    if invalid is not None:
        return invalid

    try:
        result = await service.track_wallet(body.walletAddress, body.blockchain)
    except Exception as e:
        return _server_error("track_wallet", e)

    if result:
        return OperationResponse(success=True, message=result.message)
    return _error(500, result.message)


@router.post("/stop-tracking", response_model=OperationResponse)
async def stop_tracking_wallet(
    body: WalletRequest,
    service: WalletTrackingService = Depends(get_tracking_service),
):
    """Stop tracking a wallet. Already stored transactions are kept."""
    invalid = _validate_wallet_request(body)
    if invalid is not None:
        return invalid

    try:
        result = await service.stop_tracking_wallet(body.walletAddress, body.blockchain)
    except Exception as e:
        return _server_error("stop_tracking_wallet", e)

    if result:
        return OperationResponse(success=True, message=result.message)
    return _error(500, result.message)


# =============================================================
# QUERY ENDPOINTS
# =============================================================

@router.get("/", response_model=WalletListResponse)
async def get_tracked_wallets(
    blockchain: Optional[str] = Query(None, description="Filter by blockchain"),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """All tracked wallets, newest first."""
    if blockchain and blockchain not in Chain.values():
        return _error(400, INVALID_CHAIN_MESSAGE)

    try:
        wallets = await gateway.list_wallets(blockchain or None)
    except Exception as e:
        return _server_error("get_tracked_wallets", e)

    return {"success": True, "data": [w.to_dict() for w in wallets]}


@router.get("/transactions", response_model=TransactionListResponse)
async def get_wallet_transactions(
    walletAddress: Optional[str] = Query(None),
    blockchain: Optional[str] = Query(None),
    transactionType: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    page: int = Query(1, ge=1),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """
    Stored transactions for a wallet, newest first.

    Optional filters: blockchain, transactionType (transfer | swap).
    """
    if not walletAddress:
        return _error(400, "Wallet address is required")
    if blockchain and blockchain not in Chain.values():
        return _error(400, INVALID_CHAIN_MESSAGE)
    if transactionType and transactionType not in TransactionType.values():
        return _error(400, INVALID_TYPE_MESSAGE)

    try:
        result = await gateway.list_events(
            walletAddress,
            chain=blockchain or None,
            kind=transactionType or None,
            page=page,
            limit=limit,
        )
    except Exception as e:
        return _server_error("get_wallet_transactions", e)

    return {
        "success": True,
        "data": [record.to_dict() for record in result.items],
        "pagination": result.pagination(),
    }
