"""Shared plumbing for the per-chain gateway clients."""

import logging
from typing import Any, Dict, Optional, Protocol, Type

from eth_utils import to_checksum_address

from chain.abi import ContractFunction
from chain.contracts import ERC20_APPROVE, ERC20_BALANCE_OF
from chain.node import ChainNode, TransactionHandle
from core.errors import (
    AlreadyMapped,
    AmountMismatch,
    AuthenticationFailed,
    BridgeError,
    InvalidCreatorProof,
    InvalidSignature,
    RPCError,
    TransactionReverted,
    WithdrawalAlreadyPending,
)
from core.types import Address, TokenKind, WithdrawalReceipt

logger = logging.getLogger(__name__)

# Revert reason fragments (lower case) -> domain error
REVERT_ERRORS: Dict[str, Type[BridgeError]] = {
    "pending withdrawal": WithdrawalAlreadyPending,
    "withdrawal already pending": WithdrawalAlreadyPending,
    "invalid signature": InvalidSignature,
    "amount mismatch": AmountMismatch,
    "already mapped": AlreadyMapped,
    "mapping exists": AlreadyMapped,
    "invalid creator": InvalidCreatorProof,
    "creator sig": InvalidCreatorProof,
    "invalid mapping signature": AuthenticationFailed,
}


class Signer(Protocol):
    """Capability shared by local and delegated signers."""

    @property
    def address(self) -> str:
        ...

    async def sign_message(self, message: bytes) -> bytes:
        ...

    async def send_transaction(self, node: ChainNode, tx: Dict[str, Any]) -> TransactionHandle:
        ...


class Chain(Protocol):
    """Gateway capability exposed by each chain side.

    Operations a side's gateway contract does not host raise
    ``UnsupportedOperation``.
    """

    address: Address

    async def balance_of(self, contract: Address) -> int:
        ...

    async def deposit_native(self, amount: int) -> TransactionHandle:
        ...

    async def deposit_asset(self, asset_contract: Address, amount: int) -> TransactionHandle:
        ...

    async def initiate_withdrawal(
        self, amount: int, token_kind: TokenKind, token_contract: Optional[Address] = None
    ) -> TransactionHandle:
        ...

    async def get_withdrawal_nonce(self, owner: Optional[Address] = None) -> int:
        ...

    async def get_withdrawal_receipt(self, owner: Optional[Address] = None) -> Optional[WithdrawalReceipt]:
        ...

    async def finalize_withdrawal(
        self, amount: int, signature: bytes, token_contract: Optional[Address] = None
    ) -> TransactionHandle:
        ...


def classify_revert(error: RPCError) -> BridgeError:
    """Translate a node-reported revert into the matching domain error."""
    text = f"{error.reason} {error.details}".lower()
    for fragment, error_type in REVERT_ERRORS.items():
        if fragment in text:
            return error_type(error.reason)
    if "revert" in text:
        return TransactionReverted(error.reason)
    return error


class ContractClient:
    """Calls and transactions against contracts on one chain."""

    def __init__(self, node: ChainNode, signer: Signer):
        self.node = node
        self.signer = signer

    async def call(self, contract: str, function: ContractFunction, *args: Any) -> tuple:
        """Run a read-only call and decode its outputs."""
        data = await self.node.eth_call(contract, function.encode(*args))
        return function.decode(data)

    async def transact(
        self,
        contract: str,
        function: Optional[ContractFunction],
        *args: Any,
        value: int = 0,
    ) -> TransactionHandle:
        """Submit a state-changing call.

        Gas is estimated first, so contract reverts surface as domain errors
        before anything is broadcast.

        Raises:
            WithdrawalAlreadyPending, InvalidSignature, AmountMismatch,
            AlreadyMapped, AuthenticationFailed, TransactionReverted: on revert
        """
        tx: Dict[str, Any] = {
            "from": self.signer.address,
            "to": to_checksum_address(contract),
            "value": value,
            "data": function.encode(*args) if function else "0x",
        }
        try:
            tx["gas"] = await self.node.estimate_gas(tx)
        except RPCError as e:
            raise classify_revert(e) from e

        handle = await self.signer.send_transaction(self.node, tx)
        handle.description = function.name if function else "transfer"
        logger.info(f"Submitted {handle.description} to {contract}: {handle.tx_hash}")
        return handle

    async def approve(self, token: str, spender: str, amount: int) -> None:
        """Approve ``spender`` and wait for the approval to be mined."""
        handle = await self.transact(token, ERC20_APPROVE, spender, amount)
        await handle.wait()

    async def erc20_balance(self, token: str, owner: str) -> int:
        (balance,) = await self.call(token, ERC20_BALANCE_OF, owner)
        return balance
