"""Core types and errors for the gateway bridge."""

from core.errors import (
    AccountNotMapped,
    AlreadyMapped,
    AmountMismatch,
    AuthenticationFailed,
    BridgeError,
    ConfigurationError,
    ConfirmationTimeout,
    GatewayError,
    InvalidCreatorProof,
    InvalidReceipt,
    InvalidSignature,
    RPCError,
    TransactionReverted,
    TransportError,
    UnknownAsset,
    UnsupportedOperation,
    WithdrawalAlreadyPending,
    WithdrawalNonceMismatch,
)
from core.types import (
    ZERO_ADDRESS,
    AccountMapping,
    Address,
    Asset,
    AssetMapping,
    TokenKind,
    WithdrawalReceipt,
    WithdrawalState,
)

__all__ = [
    "AccountNotMapped",
    "AlreadyMapped",
    "AmountMismatch",
    "AuthenticationFailed",
    "BridgeError",
    "ConfigurationError",
    "ConfirmationTimeout",
    "GatewayError",
    "InvalidCreatorProof",
    "InvalidReceipt",
    "InvalidSignature",
    "RPCError",
    "TransactionReverted",
    "TransportError",
    "UnknownAsset",
    "UnsupportedOperation",
    "WithdrawalAlreadyPending",
    "WithdrawalNonceMismatch",
    "ZERO_ADDRESS",
    "AccountMapping",
    "Address",
    "Asset",
    "AssetMapping",
    "TokenKind",
    "WithdrawalReceipt",
    "WithdrawalState",
]
