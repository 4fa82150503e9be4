"""Gateway bridge between a primary chain and its secondary sidechain."""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from chain.node import ChainNode, ChainNodeConfig, TransactionHandle
from config import BridgeConfig
from core.errors import AccountNotMapped, UnknownAsset
from core.types import AccountMapping, Address, Asset, AssetMapping, TokenKind, WithdrawalReceipt
from events.subscription import EventSubscriber
from events.transport import make_log_transport
from gateway.base import Signer
from gateway.primary import PrimaryGateway, PrimaryGatewayConfig
from gateway.secondary import SecondaryGateway, SecondaryGatewayConfig
from journal import WithdrawalJournal
from mapping.registry import MappingRegistry, MappingRegistryConfig
from signer import DelegatedSigner, load_signers
from withdrawal.coordinator import WithdrawalCoordinator, WithdrawalFlow
from withdrawal.monitor import PendingWithdrawalMonitor

logger = logging.getLogger(__name__)


class GatewayBridge:
    """Moves assets between the primary and secondary chains.

    Deposits go through the primary gateway; withdrawals start on the
    secondary gateway and are finalized on the primary one once the attestor
    signs. A background monitor finalizes withdrawals whose signature arrived
    after the caller stopped waiting.
    """

    def __init__(self, config: BridgeConfig):
        """Initialize the bridge.

        Args:
            config: Bridge configuration
        """
        self.config = config
        self.running = False

        primary_network = config.primary
        secondary_network = config.secondary

        self.primary_node = ChainNode(ChainNodeConfig(primary_network.rpc_url, primary_network.network_id))
        self.secondary_node = ChainNode(ChainNodeConfig(secondary_network.rpc_url, secondary_network.network_id))

        # External wallet connections, started and stopped with the chain nodes
        self._wallet_nodes: List[ChainNode] = []
        self.primary_signer, self.secondary_signer = self._load_signers()

        self.subscriber = EventSubscriber(
            make_log_transport(self.secondary_node, secondary_network.ws_url, config.log_poll_interval)
        )

        self.primary = PrimaryGateway(
            self.primary_node,
            self.primary_signer,
            PrimaryGatewayConfig(
                gateway_address=config.primary_gateway_address,
                deployment_tx_hash=config.primary_gateway_tx_hash,
                deployment_block=config.primary_gateway_block,
                chain_id=primary_network.chain_id,
            ),
        )
        self.secondary = SecondaryGateway(
            self.secondary_node,
            self.secondary_signer,
            SecondaryGatewayConfig(
                gateway_address=config.secondary_gateway_address,
                native_coin_address=config.native_coin_address,
                primary_gateway_address=config.primary_gateway_address,
                chain_id=secondary_network.chain_id,
                primary_chain_id=primary_network.chain_id,
            ),
            self.subscriber,
        )
        self.registry = MappingRegistry(
            self.secondary_node,
            self.secondary_signer,
            self.primary_node,
            MappingRegistryConfig(
                mapper_address=config.address_mapper_address,
                gateway_address=config.secondary_gateway_address,
                secondary_chain_id=secondary_network.chain_id,
            ),
        )

        self.assets: Dict[str, Asset] = {asset.symbol: asset for asset in config.build_assets()}

        self.journal = WithdrawalJournal(config.journal_path) if config.journal_path else None

        self.withdrawal_monitor = PendingWithdrawalMonitor(
            coordinator_factory=self.make_coordinator,
            assets=self.assets.values(),
            poll_interval=config.poll_interval,
        )

        logger.info(
            f"Initialized gateway bridge {primary_network.name} <-> {secondary_network.name} "
            f"(assets: {', '.join(self.assets)})"
        )

    def _load_signers(self) -> Tuple[Signer, Signer]:
        config = self.config
        delegated: List[Optional[DelegatedSigner]] = []
        for side in ("primary", "secondary"):
            wallet_url = getattr(config, f"{side}_wallet_url")
            if not wallet_url:
                delegated.append(None)
                continue
            wallet = ChainNode(ChainNodeConfig(wallet_url))
            self._wallet_nodes.append(wallet)
            delegated.append(DelegatedSigner(wallet, getattr(config, f"{side}_address")))

        return load_signers(
            config.primary_private_key,
            config.secondary_private_key,
            config.mnemonic,
            delegated=(delegated[0], delegated[1]),
        )

    async def start(self) -> None:
        """Start the bridge."""
        logger.info("Starting gateway bridge...")

        self.config.validate()

        await self.primary_node.start()
        await self.secondary_node.start()
        for wallet in self._wallet_nodes:
            await wallet.start()

        if self.journal:
            await self.journal.start()

        self.running = True
        logger.info(
            f"Bridge started for {self.primary.address} (secondary account {self.secondary.address})"
        )

    async def stop(self) -> None:
        """Stop the bridge."""
        logger.info("Stopping bridge...")
        self.running = False

        await self.withdrawal_monitor.stop()

        for wallet in self._wallet_nodes:
            await wallet.stop()
        await self.secondary_node.stop()
        await self.primary_node.stop()

        if self.journal:
            await self.journal.stop()

        logger.info("Bridge stopped")

    async def run(self) -> None:
        """Run the bridge (blocking) until cancelled."""
        await self.start()

        try:
            await self.withdrawal_monitor.start()
            while self.running:
                await asyncio.sleep(self.config.poll_interval)
        except asyncio.CancelledError:
            logger.info("Received shutdown signal")
            raise
        finally:
            await self.stop()

    def get_asset(self, symbol: str) -> Asset:
        """Look up a configured asset by symbol.

        Raises:
            UnknownAsset: If the symbol is not configured
        """
        try:
            return self.assets[symbol.upper()]
        except KeyError:
            raise UnknownAsset(f"Unknown asset {symbol}, configured: {', '.join(self.assets)}")

    def make_coordinator(self, asset: Asset) -> WithdrawalCoordinator:
        """Build a coordinator for one withdrawal of ``asset``."""
        return WithdrawalCoordinator(
            self.primary,
            self.secondary,
            asset,
            signature_timeout=self.config.withdrawal_timeout,
            confirmations=self.config.confirmations,
            journal=self.journal,
        )

    async def get_account_mapping(self) -> Optional[AccountMapping]:
        return await self.registry.get_mapping(self.primary.address)

    async def create_account_mapping(self) -> AccountMapping:
        """Link this bridge's primary account to its secondary account.

        Raises:
            AlreadyMapped: If the primary account is already mapped
            AuthenticationFailed: If the primary signature does not verify
        """
        await self.registry.create_mapping(self.primary_signer, self.primary.address, self.secondary.address)
        return AccountMapping(primary_address=self.primary.address, secondary_address=self.secondary.address)

    async def create_contract_mapping(
        self,
        primary_contract: Address,
        deployment_tx_hash: str,
        secondary_contract: Address,
        deployer_signer: Optional[Signer] = None,
    ) -> AssetMapping:
        """Map an ERC20 contract pair, proving creation with the deployer's key.

        Args:
            primary_contract: Token contract on the primary chain
            deployment_tx_hash: Transaction that deployed ``primary_contract``
            secondary_contract: Token contract on the secondary chain
            deployer_signer: Key that deployed the primary contract; defaults
                to this bridge's primary signer
        """
        return await self.registry.map_contracts(
            deployer_signer or self.primary_signer,
            primary_contract,
            deployment_tx_hash,
            secondary_contract,
        )

    async def _require_mapping(self) -> AccountMapping:
        mapping = await self.get_account_mapping()
        if mapping is None:
            raise AccountNotMapped(f"{self.primary.address} has no secondary account mapping")
        if mapping.secondary_address != self.secondary.address:
            raise AccountNotMapped(
                f"{self.primary.address} is mapped to {mapping.secondary_address}, "
                f"not {self.secondary.address}"
            )
        return mapping

    async def deposit(self, asset: Asset, amount: int) -> TransactionHandle:
        """Deposit ``amount`` of ``asset`` into the primary gateway.

        Returns:
            Handle on the submitted deposit; the secondary-chain credit
            happens later and is not awaited

        Raises:
            AccountNotMapped: If the account has no mapping yet
        """
        await self._require_mapping()
        if asset.kind == TokenKind.ETH:
            return await self.primary.deposit_native(amount)
        return await self.primary.deposit_asset(asset.primary_contract, amount)

    async def withdraw(self, asset: Asset, amount: int) -> WithdrawalFlow:
        """Withdraw ``amount`` of ``asset`` back to the primary chain.

        Returns:
            The flow; ``finalization`` holds the primary-chain handle once
            finalized, or the flow is ``PENDING`` if the attestor was late

        Raises:
            AccountNotMapped: If the account has no mapping yet
        """
        await self._require_mapping()
        return await self.make_coordinator(asset).withdraw(amount)

    async def recover_pending_withdrawal(
        self, asset: Asset, nonce: Optional[int] = None
    ) -> Optional[TransactionHandle]:
        """Finalize a withdrawal left pending, if its signature is available.

        Returns:
            Handle on the finalization, or None if there was nothing to finalize
        """
        flow = await self.make_coordinator(asset).recover(nonce)
        if flow is None:
            return None
        return flow.finalization

    async def get_pending_withdrawal(self) -> Optional[WithdrawalReceipt]:
        """The outstanding withdrawal receipt of this account, if any."""
        return await self.secondary.get_withdrawal_receipt()

    async def get_balances(self, asset: Asset) -> Tuple[int, int]:
        """Balances of ``asset`` as (primary, secondary)."""
        primary_balance = await self.primary.balance_of(asset.primary_contract)
        secondary_contract = Address.zero(self.secondary.address.chain_id) if asset.is_native else asset.secondary_contract
        secondary_balance = await self.secondary.balance_of(secondary_contract)
        return primary_balance, secondary_balance
