"""
Tests for contract call and event log encoding.
"""
import pytest
from eth_abi import encode

from chain.abi import block_number_of
from chain.contracts import PRIMARY_NONCES, TOKEN_WITHDRAWAL_SIGNED, TOKEN_WITHDRAWN, WITHDRAWAL_RECEIPT

OWNER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
TOKEN = "0x5555555555555555555555555555555555555555"


class TestContractFunction:
    """Tests for function calls."""

    def test_selector_and_calldata(self):
        """Should prefix the 4-byte selector to the encoded arguments."""
        data = PRIMARY_NONCES.encode(OWNER)
        assert PRIMARY_NONCES.signature == "nonces(address)"
        assert data.startswith("0x" + PRIMARY_NONCES.selector.hex())
        assert len(data) == 2 + 8 + 64

    def test_wrong_argument_count(self):
        with pytest.raises(ValueError):
            PRIMARY_NONCES.encode()

    def test_decode_outputs(self):
        """Should decode a tuple of return values."""
        data = "0x" + encode(
            list(WITHDRAWAL_RECEIPT.outputs),
            [OWNER, 1, TOKEN, 50, 2, b"\x01\x02"],
        ).hex()
        owner, kind, contract, amount, nonce, sig = WITHDRAWAL_RECEIPT.decode(data)
        assert owner == OWNER
        assert (kind, amount, nonce) == (1, 50, 2)
        assert contract.lower() == TOKEN
        assert sig == b"\x01\x02"


class TestContractEvent:
    """Tests for event logs."""

    def test_decode_indexed_and_data(self):
        """Should read indexed params from topics and the rest from data."""
        log = {
            "topics": [
                TOKEN_WITHDRAWAL_SIGNED.topic,
                TOKEN_WITHDRAWAL_SIGNED.encode_topic("address", OWNER),
                TOKEN_WITHDRAWAL_SIGNED.encode_topic("address", TOKEN),
            ],
            "data": "0x" + encode(["uint8", "uint256", "bytes"], [1, 50, b"\xaa" * 65]).hex(),
            "blockNumber": "0x10",
        }
        values = TOKEN_WITHDRAWAL_SIGNED.decode(log)
        assert values["tokenOwner"] == OWNER
        assert values["tokenContract"].lower() == TOKEN
        assert values["tokenKind"] == 1
        assert values["value"] == 50
        assert values["sig"] == b"\xaa" * 65
        assert block_number_of(log) == 16

    def test_rejects_other_event(self):
        """Should refuse logs of another event."""
        log = {"topics": [TOKEN_WITHDRAWN.topic], "data": "0x"}
        assert not TOKEN_WITHDRAWAL_SIGNED.matches(log)
        with pytest.raises(ValueError):
            TOKEN_WITHDRAWAL_SIGNED.decode(log)

    def test_block_number_forms(self):
        assert block_number_of({}) == 0
        assert block_number_of({"blockNumber": 7}) == 7
        assert block_number_of({"blockNumber": "0xff"}) == 255
