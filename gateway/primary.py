"""Primary-chain gateway client."""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from chain.abi import ContractEvent, block_number_of
from chain.contracts import (
    ERC20_RECEIVED,
    ETH_RECEIVED,
    PRIMARY_DEPOSIT_ERC20,
    PRIMARY_NONCES,
    PRIMARY_WITHDRAW_ERC20,
    PRIMARY_WITHDRAW_ETH,
    TOKEN_WITHDRAWN,
)
from chain.node import ChainNode, TransactionHandle
from core.errors import UnsupportedOperation
from core.types import (
    PRIMARY_CHAIN_ID,
    Address,
    AssetReceived,
    NativeReceived,
    TokenKind,
    TokenWithdrawn,
    WithdrawalReceipt,
)
from gateway.base import ContractClient, Signer

logger = logging.getLogger(__name__)

E = TypeVar("E")


@dataclass
class PrimaryGatewayConfig:
    """Where the primary gateway lives."""
    gateway_address: str
    deployment_tx_hash: str = ""
    deployment_block: Optional[int] = None
    chain_id: str = PRIMARY_CHAIN_ID


class PrimaryGateway:
    """Gateway client for the primary (canonical) chain.

    Deposits lock funds in the gateway; finalization releases them against
    an attestor signature.
    """

    def __init__(self, node: ChainNode, signer: Signer, config: PrimaryGatewayConfig):
        self.node = node
        self.signer = signer
        self.config = config
        self.contracts = ContractClient(node, signer)
        self.address = Address.from_hex(config.chain_id, signer.address)
        self._deployment_block: Optional[int] = config.deployment_block

        logger.info(f"Initialized primary gateway client for {self.address}")

    @property
    def gateway_address(self) -> str:
        return self.config.gateway_address

    async def balance_of(self, contract: Address) -> int:
        """Balance of the native asset (sentinel) or an ERC20 contract."""
        if contract.is_zero():
            return await self.node.get_balance(self.address.to_local_string())
        return await self.contracts.erc20_balance(contract.to_local_string(), self.address.to_local_string())

    async def deposit_native(self, amount: int) -> TransactionHandle:
        """Send ``amount`` of ETH to the gateway.

        The secondary chain credits it once the attestor has seen enough
        confirmations; that credit is not awaited here.
        """
        logger.info(f"Depositing {amount} wei to gateway {self.gateway_address}")
        return await self.contracts.transact(self.gateway_address, None, value=amount)

    async def deposit_asset(self, asset_contract: Address, amount: int) -> TransactionHandle:
        """Approve the gateway and deposit ``amount`` of an ERC20 token."""
        token = asset_contract.to_local_string()
        logger.info(f"Depositing {amount} of {token} to gateway {self.gateway_address}")
        await self.contracts.approve(token, self.gateway_address, amount)
        return await self.contracts.transact(self.gateway_address, PRIMARY_DEPOSIT_ERC20, amount, token)

    async def initiate_withdrawal(
        self, amount: int, token_kind: TokenKind, token_contract: Optional[Address] = None
    ) -> TransactionHandle:
        raise UnsupportedOperation("Withdrawals are initiated on the secondary chain")

    async def get_withdrawal_nonce(self, owner: Optional[Address] = None) -> int:
        """Nonce the next finalized withdrawal of ``owner`` must carry.

        It increments each time a withdrawal is finalized here, so it is also
        the count of finalized withdrawals.
        """
        owner = owner or self.address
        (nonce,) = await self.contracts.call(self.gateway_address, PRIMARY_NONCES, owner.to_local_string())
        return nonce

    async def get_withdrawal_receipt(self, owner: Optional[Address] = None) -> Optional[WithdrawalReceipt]:
        raise UnsupportedOperation("Withdrawal receipts live on the secondary chain")

    async def finalize_withdrawal(
        self, amount: int, signature: bytes, token_contract: Optional[Address] = None
    ) -> TransactionHandle:
        """Release funds by submitting the attestor's signature.

        Args:
            amount: Amount the attestor signed for
            signature: Attestor signature from the withdrawal receipt
            token_contract: Primary-side ERC20 contract; None or the native
                sentinel withdraws ETH

        Raises:
            InvalidSignature: If the signature is not the attestor's
            AmountMismatch: If ``amount`` differs from the signed amount
        """
        if token_contract is None or token_contract.is_zero():
            logger.info(f"Finalizing ETH withdrawal of {amount} wei")
            return await self.contracts.transact(self.gateway_address, PRIMARY_WITHDRAW_ETH, amount, signature)

        token = token_contract.to_local_string()
        logger.info(f"Finalizing withdrawal of {amount} of {token}")
        return await self.contracts.transact(self.gateway_address, PRIMARY_WITHDRAW_ERC20, amount, signature, token)

    async def get_native_received_logs(
        self, from_block: Optional[int] = None, to_block: Optional[int] = None
    ) -> List[NativeReceived]:
        """ETH deposits made by this account, most recent first."""
        return await self._query_logs(
            ETH_RECEIVED,
            None,
            self._decode_native_received,
            lambda event: event.sender == self.address,
            from_block,
            to_block,
        )

    async def get_asset_received_logs(
        self, asset_contract: Address, from_block: Optional[int] = None, to_block: Optional[int] = None
    ) -> List[AssetReceived]:
        """ERC20 deposits of ``asset_contract`` made by this account, most recent first."""
        return await self._query_logs(
            ERC20_RECEIVED,
            None,
            self._decode_asset_received,
            lambda event: event.sender == self.address and event.contract == asset_contract,
            from_block,
            to_block,
        )

    async def get_native_withdrawn_logs(
        self, from_block: Optional[int] = None, to_block: Optional[int] = None
    ) -> List[TokenWithdrawn]:
        return await self.get_asset_withdrawn_logs(Address.zero(self.config.chain_id), from_block, to_block)

    async def get_asset_withdrawn_logs(
        self, asset_contract: Address, from_block: Optional[int] = None, to_block: Optional[int] = None
    ) -> List[TokenWithdrawn]:
        """Finalized withdrawals of this account for ``asset_contract``, most recent first."""
        owner_topic = TOKEN_WITHDRAWN.encode_topic("address", self.address.to_local_string())
        return await self._query_logs(
            TOKEN_WITHDRAWN,
            owner_topic,
            self._decode_token_withdrawn,
            lambda event: event.owner == self.address and event.contract == asset_contract,
            from_block,
            to_block,
        )

    async def _query_logs(
        self,
        event: ContractEvent,
        owner_topic: Optional[str],
        decoder: Callable[[Dict[str, Any]], E],
        keep: Callable[[E], bool],
        from_block: Optional[int],
        to_block: Optional[int],
    ) -> List[E]:
        from_block, to_block = await self._resolve_block_range(from_block, to_block)
        topics: List[Any] = [event.topic]
        if owner_topic:
            topics.append(owner_topic)

        logs = await self.node.get_logs({
            "address": self.gateway_address,
            "topics": topics,
            "fromBlock": from_block,
            "toBlock": to_block,
        })
        logs = sorted(logs, key=block_number_of, reverse=True)
        return [decoded for decoded in (decoder(log) for log in logs) if keep(decoded)]

    async def _resolve_block_range(
        self, from_block: Optional[int], to_block: Optional[int]
    ) -> Tuple[int, int]:
        if from_block is None:
            from_block = await self.get_deployment_block()
        if to_block is None:
            to_block = await self.node.get_block_number()
        return from_block, to_block

    async def get_deployment_block(self) -> int:
        """Block the gateway was deployed in (0 when unknown)."""
        if self._deployment_block is None:
            block = 0
            if self.config.deployment_tx_hash:
                tx = await self.node.get_transaction(self.config.deployment_tx_hash)
                if tx and tx.get("blockNumber"):
                    block = int(tx["blockNumber"], 16)
            self._deployment_block = block
        return self._deployment_block

    def _eth_address(self, value: str) -> Address:
        return Address.from_hex(self.config.chain_id, value)

    def _decode_native_received(self, log: Dict[str, Any]) -> NativeReceived:
        values = ETH_RECEIVED.decode(log)
        return NativeReceived(
            sender=self._eth_address(values["from"]),
            amount=values["amount"],
            block_number=block_number_of(log),
            log=log,
        )

    def _decode_asset_received(self, log: Dict[str, Any]) -> AssetReceived:
        values = ERC20_RECEIVED.decode(log)
        return AssetReceived(
            sender=self._eth_address(values["from"]),
            amount=values["amount"],
            contract=self._eth_address(values["contractAddress"]),
            block_number=block_number_of(log),
            log=log,
        )

    def _decode_token_withdrawn(self, log: Dict[str, Any]) -> TokenWithdrawn:
        values = TOKEN_WITHDRAWN.decode(log)
        return TokenWithdrawn(
            owner=self._eth_address(values["owner"]),
            kind=TokenKind(values["kind"]),
            contract=self._eth_address(values["contractAddress"]),
            value=values["value"],
            block_number=block_number_of(log),
            log=log,
        )
