"""Account and contract mapping between the primary and secondary chains."""

import logging
from dataclasses import dataclass
from typing import Optional

from eth_utils import to_bytes, to_checksum_address
from web3 import Web3

from chain.contracts import ADD_CONTRACT_MAPPING, ADD_IDENTITY_MAPPING, GET_CONTRACT_MAPPING, GET_MAPPING, HAS_MAPPING
from chain.node import ChainNode
from core.errors import AlreadyMapped, AuthenticationFailed, InvalidCreatorProof
from core.types import AccountMapping, Address, AssetMapping
from gateway.base import ContractClient, Signer
from signer import recover_signer

logger = logging.getLogger(__name__)


def mapping_hash(primary: Address, secondary: Address) -> bytes:
    """Hash the pair ``primary ‖ secondary`` as packed Solidity addresses."""
    return bytes(Web3.solidity_keccak(
        ["address", "address"],
        [primary.to_local_string(), secondary.to_local_string()],
    ))


@dataclass
class MappingRegistryConfig:
    """Secondary-chain contracts that hold the mappings."""
    mapper_address: str
    gateway_address: str
    secondary_chain_id: str


class MappingRegistry:
    """Creates and queries identity and contract mappings.

    Mappings live on the secondary chain; contract-mapping proofs are checked
    against the deployment transaction on the primary chain.
    """

    def __init__(
        self,
        secondary_node: ChainNode,
        secondary_signer: Signer,
        primary_node: ChainNode,
        config: MappingRegistryConfig,
    ):
        self.contracts = ContractClient(secondary_node, secondary_signer)
        self.primary_node = primary_node
        self.config = config

    async def has_mapping(self, primary_address: Address) -> bool:
        (mapped,) = await self.contracts.call(
            self.config.mapper_address, HAS_MAPPING, primary_address.to_local_string()
        )
        return mapped

    async def get_mapping(self, primary_address: Address) -> Optional[AccountMapping]:
        """Get the secondary account mapped to ``primary_address``, if any."""
        (secondary,) = await self.contracts.call(
            self.config.mapper_address, GET_MAPPING, primary_address.to_local_string()
        )
        secondary_address = Address.from_hex(self.config.secondary_chain_id, secondary)
        if secondary_address.is_zero():
            return None
        return AccountMapping(primary_address=primary_address, secondary_address=secondary_address)

    async def create_mapping(
        self,
        primary_signer: Signer,
        primary_address: Address,
        secondary_address: Address,
    ) -> None:
        """Link ``primary_address`` to ``secondary_address``.

        The primary key signs the pair to prove ownership; the signature is
        verified here before anything is submitted.

        Raises:
            AlreadyMapped: If ``primary_address`` is already mapped
            AuthenticationFailed: If the signature does not recover to ``primary_address``
        """
        if await self.has_mapping(primary_address):
            raise AlreadyMapped(f"{primary_address} is already mapped")

        message = mapping_hash(primary_address, secondary_address)
        signature = await primary_signer.sign_message(message)

        signer_address = recover_signer(message, signature)
        if signer_address != primary_address.to_local_string():
            raise AuthenticationFailed(
                f"Mapping signature recovers to {signer_address}, not {primary_address}"
            )

        logger.info(f"Mapping {primary_address} to {secondary_address}")
        handle = await self.contracts.transact(
            self.config.mapper_address,
            ADD_IDENTITY_MAPPING,
            primary_address.to_local_string(),
            secondary_address.to_local_string(),
            signature,
        )
        await handle.wait()
        logger.info(f"Mapped {primary_address} to {secondary_address} in {handle.tx_hash}")

    async def get_contract_mapping(self, primary_contract: Address) -> Optional[Address]:
        (secondary,) = await self.contracts.call(
            self.config.gateway_address, GET_CONTRACT_MAPPING, primary_contract.to_local_string()
        )
        secondary_contract = Address.from_hex(self.config.secondary_chain_id, secondary)
        return None if secondary_contract.is_zero() else secondary_contract

    async def map_contracts(
        self,
        deployer_signer: Signer,
        primary_contract: Address,
        deployment_tx_hash: str,
        secondary_contract: Address,
    ) -> AssetMapping:
        """Map a primary-chain contract to its secondary-chain counterpart.

        Args:
            deployer_signer: Signer holding the key that deployed ``primary_contract``
            primary_contract: Contract on the primary chain
            deployment_tx_hash: Hash of the transaction that deployed it
            secondary_contract: Contract on the secondary chain

        Returns:
            The created asset mapping

        Raises:
            AlreadyMapped: If the primary contract is already mapped
            InvalidCreatorProof: If the proof does not recover to the deployer
        """
        if await self.get_contract_mapping(primary_contract) is not None:
            raise AlreadyMapped(f"{primary_contract} is already mapped")

        deployer = await self._find_deployer(primary_contract, deployment_tx_hash)

        proof_hash = mapping_hash(primary_contract, secondary_contract)
        creator_proof = await deployer_signer.sign_message(proof_hash)
        if recover_signer(proof_hash, creator_proof) != deployer:
            raise InvalidCreatorProof(
                f"Creator proof for {primary_contract} is not signed by deployer {deployer}"
            )

        logger.info(f"Mapping contract {primary_contract} to {secondary_contract}")
        handle = await self.contracts.transact(
            self.config.gateway_address,
            ADD_CONTRACT_MAPPING,
            primary_contract.to_local_string(),
            secondary_contract.to_local_string(),
            creator_proof,
            to_bytes(hexstr=deployment_tx_hash),
        )
        await handle.wait()

        return AssetMapping(
            primary_contract=primary_contract,
            secondary_contract=secondary_contract,
            creator_proof=creator_proof,
            deployment_tx_hash=deployment_tx_hash,
        )

    async def _find_deployer(self, primary_contract: Address, deployment_tx_hash: str) -> str:
        receipt = await self.primary_node.get_transaction_receipt(deployment_tx_hash)
        if not receipt or not receipt.get("contractAddress"):
            raise InvalidCreatorProof(f"{deployment_tx_hash} is not a contract deployment")

        created = to_checksum_address(receipt["contractAddress"])
        if created != primary_contract.to_local_string():
            raise InvalidCreatorProof(
                f"{deployment_tx_hash} deployed {created}, not {primary_contract}"
            )
        return to_checksum_address(receipt["from"])
