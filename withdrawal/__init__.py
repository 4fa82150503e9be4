"""Withdrawal coordination and recovery."""

from withdrawal.coordinator import (
    ALLOWED_TRANSITIONS,
    DEFAULT_SIGNATURE_TIMEOUT,
    InvalidTransition,
    WithdrawalCoordinator,
    WithdrawalFlow,
)
from withdrawal.monitor import PendingWithdrawalMonitor

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DEFAULT_SIGNATURE_TIMEOUT",
    "InvalidTransition",
    "PendingWithdrawalMonitor",
    "WithdrawalCoordinator",
    "WithdrawalFlow",
]
