"""Withdrawal-related API endpoints."""

import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException, Depends

from api.dependencies import get_bridge, to_http_error
from api.models import (
    FinalizedWithdrawal,
    PendingWithdrawal,
    RecoverRequest,
    RecoverResponse,
    TransferRequest,
    WithdrawalRecord,
    WithdrawalResponse,
)
from bridge import GatewayBridge
from core.errors import BridgeError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["withdrawals"])


@router.post("/withdrawals", response_model=WithdrawalResponse)
async def withdraw(request: TransferRequest, bridge: GatewayBridge = Depends(get_bridge)):
    """Withdraw an asset back to the primary chain.

    Blocks until the withdrawal is finalized or the signature wait times out;
    in the latter case the response state is ``pending`` and the withdrawal
    is finalized later by recovery.
    """
    try:
        asset = bridge.get_asset(request.asset)
        flow = await bridge.withdraw(asset, request.amount)
    except BridgeError as e:
        logger.error(f"Withdrawal of {request.amount} {request.asset} failed: {e}")
        raise to_http_error(e)

    return WithdrawalResponse(
        asset=asset.symbol,
        amount=flow.amount,
        nonce=flow.nonce,
        state=flow.state.value,
        initiation_tx=flow.initiation.tx_hash if flow.initiation else None,
        finalization_tx=flow.finalization.tx_hash if flow.finalization else None,
    )


@router.get("/withdrawals/pending", response_model=Optional[PendingWithdrawal])
async def get_pending_withdrawal(bridge: GatewayBridge = Depends(get_bridge)):
    """The outstanding withdrawal receipt, or null if there is none."""
    try:
        receipt = await bridge.get_pending_withdrawal()
    except BridgeError as e:
        logger.error(f"Failed to get pending withdrawal: {e}")
        raise to_http_error(e)

    if receipt is None:
        return None

    return PendingWithdrawal(
        owner=str(receipt.owner),
        token_kind=receipt.token_kind.name,
        token_contract=str(receipt.token_contract),
        amount=receipt.amount,
        nonce=receipt.nonce,
        signed=receipt.is_signed,
    )


@router.post("/withdrawals/recover", response_model=RecoverResponse)
async def recover_withdrawal(request: RecoverRequest, bridge: GatewayBridge = Depends(get_bridge)):
    """Finalize a pending withdrawal if the attestor has signed it."""
    try:
        asset = bridge.get_asset(request.asset)
        handle = await bridge.recover_pending_withdrawal(asset, request.nonce)
    except BridgeError as e:
        logger.error(f"Recovery of {request.asset} withdrawal failed: {e}")
        raise to_http_error(e)

    return RecoverResponse(recovered=handle is not None, tx_hash=handle.tx_hash if handle else None)


@router.get("/withdrawals", response_model=List[WithdrawalRecord])
async def get_withdrawals(limit: int = 50, bridge: GatewayBridge = Depends(get_bridge)):
    """Withdrawal history from the local journal."""
    if not bridge.journal:
        raise HTTPException(status_code=503, detail="Withdrawal journal not enabled")

    entries = await bridge.journal.list_withdrawals(str(bridge.primary.address), limit)
    return [
        WithdrawalRecord(
            owner=entry.owner,
            asset=entry.asset,
            nonce=entry.nonce,
            amount=entry.amount,
            state=entry.state,
            initiation_tx=entry.initiation_tx,
            finalization_tx=entry.finalization_tx,
            error=entry.error,
            updated_at=entry.updated_at,
        )
        for entry in entries
    ]


@router.get("/withdrawals/finalized/{symbol}", response_model=List[FinalizedWithdrawal])
async def get_finalized_withdrawals(
    symbol: str,
    from_block: Optional[int] = None,
    to_block: Optional[int] = None,
    bridge: GatewayBridge = Depends(get_bridge)
):
    """Withdrawals finalized on the primary gateway, most recent first."""
    try:
        asset = bridge.get_asset(symbol)
        events = await bridge.primary.get_asset_withdrawn_logs(asset.primary_contract, from_block, to_block)
    except BridgeError as e:
        logger.error(f"Failed to get finalized {symbol} withdrawals: {e}")
        raise to_http_error(e)

    return [
        FinalizedWithdrawal(
            tx_hash=event.log.get("transactionHash", ""),
            asset=asset.symbol,
            amount=event.value,
            block_number=event.block_number,
        )
        for event in events
    ]
