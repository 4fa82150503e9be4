"""
Tests for key loading and signing.
"""
from unittest.mock import AsyncMock, Mock

import pytest
from eth_account import Account
from eth_utils import to_checksum_address

from core.errors import ConfigurationError
from signer import DelegatedSigner, LocalSigner, load_signers, load_signers_from_mnemonic, recover_signer
from tests.conftest import GATEWAY, OTHER_KEY, PRIMARY_KEY, FakeChainNode

TEST_MNEMONIC = "abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon abandon about"


class TestLoadSignersFromMnemonic:
    """Tests for mnemonic-derived signers."""

    def test_primary_follows_bip44_path(self):
        """Should derive the standard first Ethereum account."""
        primary, _ = load_signers_from_mnemonic(TEST_MNEMONIC)
        assert primary.address == "0x9858EfFD232B4033E47d90003D41EC34EcaEda94"

    def test_secondary_is_deterministic_and_distinct(self):
        primary, secondary = load_signers_from_mnemonic(TEST_MNEMONIC)
        _, again = load_signers_from_mnemonic(f"  {TEST_MNEMONIC}\n")

        assert secondary.address != primary.address
        assert again.address == secondary.address

    def test_invalid_mnemonic(self):
        with pytest.raises(ConfigurationError):
            load_signers_from_mnemonic("abandon " * 11 + "abandon")

    def test_empty_mnemonic(self):
        with pytest.raises(ConfigurationError):
            load_signers_from_mnemonic("   ")


class TestLoadSigners:
    def test_explicit_keys(self):
        primary, secondary = load_signers(PRIMARY_KEY, OTHER_KEY)
        assert primary.address == Account.from_key(PRIMARY_KEY).address
        assert secondary.address == Account.from_key(OTHER_KEY).address

    def test_mnemonic_fallback(self):
        """Should derive only the side that has no explicit key from the mnemonic."""
        primary, secondary = load_signers(primary_private_key=PRIMARY_KEY, mnemonic=TEST_MNEMONIC)
        _, derived = load_signers_from_mnemonic(TEST_MNEMONIC)

        assert primary.address == Account.from_key(PRIMARY_KEY).address
        assert secondary.address == derived.address

    def test_delegated_wallet_wins(self):
        """Should prefer a delegated wallet over a key for the same side."""
        wallet = DelegatedSigner(FakeChainNode(), GATEWAY)

        primary, secondary = load_signers(PRIMARY_KEY, OTHER_KEY, delegated=(wallet, None))

        assert primary is wallet
        assert secondary.address == Account.from_key(OTHER_KEY).address

    def test_nothing_configured(self):
        with pytest.raises(ConfigurationError):
            load_signers()

    def test_one_side_missing(self):
        with pytest.raises(ConfigurationError, match="secondary"):
            load_signers(primary_private_key=PRIMARY_KEY)


class TestLocalSigner:
    """Tests for LocalSigner."""

    @pytest.mark.asyncio
    async def test_sign_and_recover(self):
        signer = LocalSigner(PRIMARY_KEY)
        message = b"\x12" * 32

        signature = await signer.sign_message(message)

        assert len(signature) == 65
        assert recover_signer(message, signature) == signer.address
        assert recover_signer(b"\x13" * 32, signature) != signer.address

    @pytest.mark.asyncio
    async def test_send_transaction_fills_and_signs(self):
        """Should fill nonce, gas price and chain id, then broadcast the signed transaction."""
        signer = LocalSigner(PRIMARY_KEY)
        node = FakeChainNode(chain_id=4)

        handle = await signer.send_transaction(node, {
            "from": signer.address,
            "to": to_checksum_address(GATEWAY),
            "value": 5,
            "data": "0x",
            "gas": 21000,
        })

        assert len(node.raw_transactions) == 1
        assert Account.recover_transaction(node.raw_transactions[0]) == signer.address
        assert handle.tx_hash in node.receipts


class TestDelegatedSigner:
    """Tests for DelegatedSigner."""

    @pytest.mark.asyncio
    async def test_sign_message_uses_personal_sign(self):
        wallet = Mock(call_method=AsyncMock(return_value="0x" + "11" * 65))
        signer = DelegatedSigner(wallet, GATEWAY)

        signature = await signer.sign_message(b"\xab\xcd")

        assert signature == b"\x11" * 65
        wallet.call_method.assert_awaited_once_with("personal_sign", ["0xabcd", signer.address])

    @pytest.mark.asyncio
    async def test_send_transaction_through_wallet(self):
        """Should leave signing to the wallet and watch the hash on the chain node."""
        wallet = Mock(call_method=AsyncMock(return_value="0x" + "22" * 32))
        node = FakeChainNode()
        signer = DelegatedSigner(wallet, GATEWAY)

        handle = await signer.send_transaction(node, {"to": GATEWAY, "value": 1, "data": "0x"})

        method, (tx,) = wallet.call_method.await_args.args
        assert method == "eth_sendTransaction"
        assert tx["from"] == signer.address
        assert handle.tx_hash == "0x" + "22" * 32
        assert handle.node is node
        assert node.raw_transactions == []
