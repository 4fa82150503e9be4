"""Deposit-related API endpoints."""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends

from api.dependencies import get_bridge, to_http_error
from api.models import BalanceResponse, DepositRecord, TransactionResponse, TransferRequest
from bridge import GatewayBridge
from core.errors import BridgeError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["deposits"])


@router.post("/deposits", response_model=TransactionResponse)
async def deposit(request: TransferRequest, bridge: GatewayBridge = Depends(get_bridge)):
    """Deposit an asset into the primary gateway.

    Returns once the deposit is submitted; the secondary-chain credit follows
    after the attestor has seen enough confirmations.
    """
    try:
        asset = bridge.get_asset(request.asset)
        handle = await bridge.deposit(asset, request.amount)
    except BridgeError as e:
        logger.error(f"Deposit of {request.amount} {request.asset} failed: {e}")
        raise to_http_error(e)

    return TransactionResponse(tx_hash=handle.tx_hash, description=handle.description)


@router.get("/deposits/{symbol}", response_model=List[DepositRecord])
async def get_deposits(
    symbol: str,
    from_block: Optional[int] = None,
    to_block: Optional[int] = None,
    bridge: GatewayBridge = Depends(get_bridge)
):
    """Deposits of an asset made by the bridge's account, most recent first."""
    try:
        asset = bridge.get_asset(symbol)
        if asset.is_native:
            events = await bridge.primary.get_native_received_logs(from_block, to_block)
        else:
            events = await bridge.primary.get_asset_received_logs(asset.primary_contract, from_block, to_block)
    except BridgeError as e:
        logger.error(f"Failed to get {symbol} deposits: {e}")
        raise to_http_error(e)

    return [
        DepositRecord(
            tx_hash=event.log.get("transactionHash", ""),
            asset=asset.symbol,
            amount=event.amount,
            block_number=event.block_number,
        )
        for event in events
    ]


@router.get("/balances/{symbol}", response_model=BalanceResponse)
async def get_balances(symbol: str, bridge: GatewayBridge = Depends(get_bridge)):
    try:
        asset = bridge.get_asset(symbol)
        primary, secondary = await bridge.get_balances(asset)
    except BridgeError as e:
        logger.error(f"Failed to get {symbol} balances: {e}")
        raise to_http_error(e)

    return BalanceResponse(asset=asset.symbol, primary=primary, secondary=secondary)
