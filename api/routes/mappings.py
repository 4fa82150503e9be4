"""Account and contract mapping endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Depends

from api.dependencies import get_bridge, to_http_error
from api.models import AccountMappingStatus, ContractMappingRequest, ContractMappingStatus
from bridge import GatewayBridge
from core.errors import BridgeError
from core.types import Address

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["mappings"])


@router.get("/mapping", response_model=AccountMappingStatus)
async def get_account_mapping(bridge: GatewayBridge = Depends(get_bridge)):
    """Mapping status of the bridge's primary account."""
    try:
        mapping = await bridge.get_account_mapping()
    except BridgeError as e:
        logger.error(f"Failed to get account mapping: {e}")
        raise to_http_error(e)

    return AccountMappingStatus(
        primary_address=str(bridge.primary.address),
        secondary_address=str(mapping.secondary_address) if mapping else None,
        mapped=mapping is not None,
    )


@router.post("/mapping", response_model=AccountMappingStatus)
async def create_account_mapping(bridge: GatewayBridge = Depends(get_bridge)):
    """Link the primary account to the secondary account.

    Must be done once before the first deposit or withdrawal.
    """
    try:
        mapping = await bridge.create_account_mapping()
    except BridgeError as e:
        logger.error(f"Failed to create account mapping: {e}")
        raise to_http_error(e)

    return AccountMappingStatus(
        primary_address=str(mapping.primary_address),
        secondary_address=str(mapping.secondary_address),
        mapped=True,
    )


def _parse_address(chain_id: str, value: str) -> Address:
    try:
        return Address.from_hex(chain_id, value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/contract-mapping/{primary_contract}", response_model=ContractMappingStatus)
async def get_contract_mapping(primary_contract: str, bridge: GatewayBridge = Depends(get_bridge)):
    contract = _parse_address(bridge.primary.address.chain_id, primary_contract)
    try:
        secondary = await bridge.registry.get_contract_mapping(contract)
    except BridgeError as e:
        logger.error(f"Failed to get contract mapping: {e}")
        raise to_http_error(e)

    return ContractMappingStatus(
        primary_contract=str(contract),
        secondary_contract=str(secondary) if secondary else None,
        mapped=secondary is not None,
    )


@router.post("/contract-mapping", response_model=ContractMappingStatus)
async def create_contract_mapping(
    request: ContractMappingRequest,
    bridge: GatewayBridge = Depends(get_bridge)
):
    """Map an ERC20 pair; the bridge's primary key must have deployed the primary contract."""
    primary_contract = _parse_address(bridge.primary.address.chain_id, request.primary_contract)
    secondary_contract = _parse_address(bridge.secondary.address.chain_id, request.secondary_contract)
    try:
        mapping = await bridge.create_contract_mapping(
            primary_contract, request.deployment_tx_hash, secondary_contract
        )
    except BridgeError as e:
        logger.error(f"Failed to create contract mapping: {e}")
        raise to_http_error(e)

    return ContractMappingStatus(
        primary_contract=str(mapping.primary_contract),
        secondary_contract=str(mapping.secondary_contract),
        mapped=True,
    )
