"""Secondary-chain gateway client."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from chain.abi import block_number_of
from chain.contracts import (
    SECONDARY_NONCES,
    SECONDARY_WITHDRAW_ERC20,
    SECONDARY_WITHDRAW_ETH,
    TOKEN_WITHDRAWAL_SIGNED,
    WITHDRAWAL_RECEIPT,
)
from chain.node import ChainNode, TransactionHandle
from core.errors import UnsupportedOperation
from core.types import (
    PRIMARY_CHAIN_ID,
    Address,
    TokenKind,
    TokenWithdrawalSigned,
    WithdrawalReceipt,
)
from events.subscription import EventSubscriber, Subscription
from gateway.base import ContractClient, Signer

logger = logging.getLogger(__name__)


@dataclass
class SecondaryGatewayConfig:
    """Where the secondary gateway and its companions live."""
    gateway_address: str
    native_coin_address: str  # ERC20-style contract holding ETH on the secondary chain
    primary_gateway_address: str
    chain_id: str = "default"
    primary_chain_id: str = PRIMARY_CHAIN_ID


class SecondaryGateway:
    """Gateway client for the secondary (fast) chain.

    Withdrawals start here: the gateway takes the tokens, records a receipt
    and the attestor later writes its signature into that receipt.
    """

    def __init__(
        self,
        node: ChainNode,
        signer: Signer,
        config: SecondaryGatewayConfig,
        subscriber: EventSubscriber,
    ):
        self.node = node
        self.signer = signer
        self.config = config
        self.subscriber = subscriber
        self.contracts = ContractClient(node, signer)
        self.address = Address.from_hex(config.chain_id, signer.address)

        logger.info(f"Initialized secondary gateway client for {self.address}")

    @property
    def gateway_address(self) -> str:
        return self.config.gateway_address

    async def balance_of(self, contract: Address) -> int:
        """Balance of the native coin (sentinel) or an ERC20 contract."""
        token = self.config.native_coin_address if contract.is_zero() else contract.to_local_string()
        return await self.contracts.erc20_balance(token, self.address.to_local_string())

    async def deposit_native(self, amount: int) -> TransactionHandle:
        raise UnsupportedOperation("Deposits are made on the primary chain")

    async def deposit_asset(self, asset_contract: Address, amount: int) -> TransactionHandle:
        raise UnsupportedOperation("Deposits are made on the primary chain")

    async def initiate_withdrawal(
        self, amount: int, token_kind: TokenKind, token_contract: Optional[Address] = None
    ) -> TransactionHandle:
        """Hand ``amount`` to the gateway and request a withdrawal receipt.

        Args:
            amount: Amount in base units
            token_kind: ETH or ERC20
            token_contract: Secondary-side ERC20 contract (required for ERC20)

        Raises:
            WithdrawalAlreadyPending: If the owner has an unresolved receipt
        """
        if token_kind == TokenKind.ETH:
            token = self.config.native_coin_address
            logger.info(f"Initiating ETH withdrawal of {amount} wei")
            await self.contracts.approve(token, self.gateway_address, amount)
            return await self.contracts.transact(
                self.gateway_address, SECONDARY_WITHDRAW_ETH, amount, self.config.primary_gateway_address
            )

        if token_contract is None or token_contract.is_zero():
            raise ValueError("ERC20 withdrawals need the secondary-side token contract")

        token = token_contract.to_local_string()
        logger.info(f"Initiating withdrawal of {amount} of {token}")
        await self.contracts.approve(token, self.gateway_address, amount)
        return await self.contracts.transact(self.gateway_address, SECONDARY_WITHDRAW_ERC20, amount, token)

    async def get_withdrawal_nonce(self, owner: Optional[Address] = None) -> int:
        """Nonce the gateway will embed in ``owner``'s next withdrawal receipt."""
        owner = owner or self.address
        (nonce,) = await self.contracts.call(self.gateway_address, SECONDARY_NONCES, owner.to_local_string())
        return nonce

    async def get_withdrawal_receipt(self, owner: Optional[Address] = None) -> Optional[WithdrawalReceipt]:
        """Fetch the outstanding withdrawal receipt of ``owner``.

        The receipt is keyed by the secondary-chain account; its ``owner``
        and ``token_contract`` are primary-chain addresses.

        Returns:
            The receipt, or None if the owner has none outstanding
        """
        owner = owner or self.address
        token_owner, kind, token_contract, amount, nonce, signature = await self.contracts.call(
            self.gateway_address, WITHDRAWAL_RECEIPT, owner.to_local_string()
        )

        receipt_owner = Address.from_hex(self.config.primary_chain_id, token_owner)
        if receipt_owner.is_zero():
            return None

        return WithdrawalReceipt(
            owner=receipt_owner,
            token_kind=TokenKind(kind),
            token_contract=Address.from_hex(self.config.primary_chain_id, token_contract),
            amount=amount,
            nonce=nonce,
            signature=bytes(signature) or None,
        )

    async def finalize_withdrawal(
        self, amount: int, signature: bytes, token_contract: Optional[Address] = None
    ) -> TransactionHandle:
        raise UnsupportedOperation("Withdrawals are finalized on the primary chain")

    async def subscribe_withdrawal_signed(self) -> Subscription:
        """Subscribe to the attestor's withdrawal-signed events on this gateway."""
        return await self.subscriber.subscribe(
            TOKEN_WITHDRAWAL_SIGNED, self.gateway_address, self.decode_withdrawal_signed
        )

    def decode_withdrawal_signed(self, log: Dict[str, Any]) -> TokenWithdrawalSigned:
        values = TOKEN_WITHDRAWAL_SIGNED.decode(log)
        return TokenWithdrawalSigned(
            token_owner=Address.from_hex(self.config.primary_chain_id, values["tokenOwner"]),
            token_contract=Address.from_hex(self.config.primary_chain_id, values["tokenContract"]),
            token_kind=TokenKind(values["tokenKind"]),
            value=values["value"],
            signature=bytes(values["sig"]),
            block_number=block_number_of(log),
            log=log,
        )
