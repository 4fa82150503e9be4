"""Shared dependencies for API routes."""

from typing import List, Optional, Tuple, Type

from fastapi import HTTPException

from bridge import GatewayBridge
from core.errors import (
    AccountNotMapped,
    AlreadyMapped,
    AuthenticationFailed,
    BridgeError,
    ConfirmationTimeout,
    GatewayError,
    TransportError,
    UnknownAsset,
    UnsupportedOperation,
    WithdrawalAlreadyPending,
    WithdrawalNonceMismatch,
)

# Global bridge instance
_bridge: Optional[GatewayBridge] = None

# First match wins, so subclasses come before their bases.
ERROR_STATUS: List[Tuple[Type[BridgeError], int]] = [
    (UnknownAsset, 404),
    (AlreadyMapped, 409),
    (AccountNotMapped, 409),
    (WithdrawalAlreadyPending, 409),
    (WithdrawalNonceMismatch, 409),
    (AuthenticationFailed, 403),
    (UnsupportedOperation, 400),
    (GatewayError, 422),
    (TransportError, 502),
    (ConfirmationTimeout, 504),
]


def set_bridge(bridge: Optional[GatewayBridge]) -> None:
    """Set the global bridge instance."""
    global _bridge
    _bridge = bridge


def get_bridge() -> GatewayBridge:
    """Get the bridge instance dependency."""
    if not _bridge:
        raise HTTPException(status_code=503, detail="Bridge not initialized")
    return _bridge


def to_http_error(error: BridgeError) -> HTTPException:
    """Translate a bridge error into the HTTP error returned to clients."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
