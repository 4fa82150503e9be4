"""Gateway clients, one per chain side."""

from gateway.base import Chain, ContractClient, Signer, classify_revert
from gateway.primary import PrimaryGateway, PrimaryGatewayConfig
from gateway.secondary import SecondaryGateway, SecondaryGatewayConfig

__all__ = [
    "Chain",
    "ContractClient",
    "PrimaryGateway",
    "PrimaryGatewayConfig",
    "SecondaryGateway",
    "SecondaryGatewayConfig",
    "Signer",
    "classify_revert",
]
