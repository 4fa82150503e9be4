"""Signing providers for primary- and secondary-chain accounts."""

import hashlib
import logging
from typing import Any, Dict, Optional, Tuple, Union

from bip_utils import Bip39MnemonicValidator, Bip39SeedGenerator, Bip44, Bip44Changes, Bip44Coins
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_bytes, to_checksum_address

from chain.node import ChainNode, TransactionHandle, to_rpc_transaction
from core.errors import ConfigurationError
from gateway.base import Signer

logger = logging.getLogger(__name__)


class LocalSigner:
    """Signer holding a private key in process."""

    def __init__(self, private_key: Union[bytes, str]):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def sign_message(self, message: bytes) -> bytes:
        """Sign ``message`` as an EIP-191 personal message."""
        signed = self._account.sign_message(encode_defunct(primitive=message))
        return bytes(signed.signature)

    async def send_transaction(self, node: ChainNode, tx: Dict[str, Any]) -> TransactionHandle:
        """Fill in nonce, gas price and chain id, sign locally and broadcast.

        Args:
            node: Node of the chain the transaction targets
            tx: Transaction fields (``to``, ``data``, ``value``, ``gas``)

        Returns:
            Handle on the broadcast transaction
        """
        tx = dict(tx)
        tx.pop("from", None)
        if "nonce" not in tx:
            tx["nonce"] = await node.get_transaction_count(self.address)
        if "gasPrice" not in tx:
            tx["gasPrice"] = await node.get_gas_price()
        if "chainId" not in tx:
            tx["chainId"] = await node.get_chain_id()

        signed = self._account.sign_transaction(tx)
        tx_hash = await node.send_raw_transaction(signed.raw_transaction.hex())
        logger.debug(f"Broadcast transaction {tx_hash} from {self.address}")
        return TransactionHandle(tx_hash, node)


class DelegatedSigner:
    """Signer backed by an external wallet reached over JSON-RPC.

    The key never enters this process; messages go through ``personal_sign``
    and transactions through ``eth_sendTransaction`` on the wallet endpoint.
    """

    def __init__(self, wallet: ChainNode, address: str):
        self.wallet = wallet
        self._address = to_checksum_address(address)

    @property
    def address(self) -> str:
        return self._address

    async def sign_message(self, message: bytes) -> bytes:
        signature = await self.wallet.call_method("personal_sign", ["0x" + message.hex(), self.address])
        return to_bytes(hexstr=signature)

    async def send_transaction(self, node: ChainNode, tx: Dict[str, Any]) -> TransactionHandle:
        tx = dict(tx)
        tx["from"] = self.address
        tx_hash = await self.wallet.call_method("eth_sendTransaction", [to_rpc_transaction(tx)])
        logger.debug(f"Wallet broadcast transaction {tx_hash} from {self.address}")
        return TransactionHandle(tx_hash, node)


def recover_signer(message: bytes, signature: bytes) -> str:
    """Recover the checksum address that signed ``message`` (EIP-191)."""
    return Account.recover_message(encode_defunct(primitive=message), signature=signature)


def load_signers_from_mnemonic(mnemonic: str) -> Tuple[LocalSigner, LocalSigner]:
    """Derive primary and secondary chain signers from a BIP39 mnemonic.

    The primary key follows the BIP44 Ethereum path m/44'/60'/0'/0/0. The
    secondary key is the SHA-256 of the BIP39 seed, so one phrase always
    yields the same pair of accounts.

    Args:
        mnemonic: 12 or 24-word mnemonic phrase

    Returns:
        Tuple of (primary signer, secondary signer)

    Raises:
        ConfigurationError: If mnemonic is invalid
    """
    if not mnemonic or not mnemonic.strip():
        raise ConfigurationError("Mnemonic cannot be empty")

    mnemonic = mnemonic.strip()

    if not Bip39MnemonicValidator().IsValid(mnemonic):
        raise ConfigurationError("Invalid mnemonic phrase")

    logger.info("Loading signers from mnemonic")

    seed_bytes = Bip39SeedGenerator(mnemonic).Generate()

    bip44_ctx = Bip44.FromSeed(seed_bytes, Bip44Coins.ETHEREUM)
    bip44_acc_ctx = bip44_ctx.Purpose().Coin().Account(0).Change(Bip44Changes.CHAIN_EXT).AddressIndex(0)
    primary_key = bip44_acc_ctx.PrivateKey().Raw().ToBytes()

    secondary_key = hashlib.sha256(seed_bytes).digest()

    primary, secondary = LocalSigner(primary_key), LocalSigner(secondary_key)
    logger.info(f"Loaded signers: primary {primary.address}, secondary {secondary.address}")
    return primary, secondary


def load_signers(
    primary_private_key: Optional[str] = None,
    secondary_private_key: Optional[str] = None,
    mnemonic: Optional[str] = None,
    delegated: Tuple[Optional[DelegatedSigner], Optional[DelegatedSigner]] = (None, None),
) -> Tuple[Signer, Signer]:
    """Load the signer pair.

    Each side uses its delegated wallet if one is given, else its private
    key, else the key derived from the mnemonic.

    Args:
        primary_private_key: Hex private key of the primary account
        secondary_private_key: Hex private key of the secondary account
        mnemonic: BIP39 phrase both keys can be derived from
        delegated: External wallet signers as (primary, secondary)

    Raises:
        ConfigurationError: If a side has no key source, or the mnemonic is invalid
    """
    derived: Tuple[Optional[LocalSigner], Optional[LocalSigner]] = (None, None)
    if mnemonic:
        derived = load_signers_from_mnemonic(mnemonic)

    signers = []
    for side, wallet, private_key, fallback in zip(
        ("primary", "secondary"), delegated, (primary_private_key, secondary_private_key), derived
    ):
        if wallet is not None:
            signers.append(wallet)
        elif private_key:
            signers.append(LocalSigner(private_key))
        elif fallback is not None:
            signers.append(fallback)
        else:
            raise ConfigurationError(f"No key configured for the {side} account")
    return signers[0], signers[1]
