"""Core types for the gateway bridge."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from eth_utils import is_hex_address, to_bytes, to_checksum_address

from core.errors import InvalidReceipt

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

PRIMARY_CHAIN_ID = "eth"


@dataclass(frozen=True)
class Address:
    """Chain-qualified account or contract identifier."""
    chain_id: str
    local: bytes  # 20 raw bytes

    def __post_init__(self):
        if len(self.local) != 20:
            raise ValueError(f"Local address must be 20 bytes, got {len(self.local)}")

    @classmethod
    def from_hex(cls, chain_id: str, hex_address: str) -> "Address":
        """Build an address from a 0x-prefixed hex string."""
        if not is_hex_address(hex_address):
            raise ValueError(f"Invalid hex address: {hex_address}")
        return cls(chain_id, to_bytes(hexstr=hex_address))

    @classmethod
    def from_string(cls, address: str) -> "Address":
        """Parse an address of format ``<chain id>:<hex address>``."""
        parts = address.split(":")
        if len(parts) != 2:
            raise ValueError("Invalid address string")
        return cls.from_hex(parts[0], parts[1])

    @classmethod
    def zero(cls, chain_id: str) -> "Address":
        """The native asset sentinel on ``chain_id``."""
        return cls(chain_id, bytes(20))

    def to_local_string(self) -> str:
        return to_checksum_address(self.local)

    def is_zero(self) -> bool:
        return self.local == bytes(20)

    def __str__(self) -> str:
        return f"{self.chain_id}:{self.to_local_string()}"


class TokenKind(Enum):
    """Kind of token moved through the gateways (values match the contracts)."""
    ETH = 0
    ERC20 = 1


@dataclass(frozen=True)
class Asset:
    """An asset pair that can move between the chains."""
    symbol: str
    kind: TokenKind
    primary_contract: Address
    secondary_contract: Address

    @property
    def is_native(self) -> bool:
        return self.kind == TokenKind.ETH


@dataclass(frozen=True)
class AccountMapping:
    """Equivalence between a primary-chain and a secondary-chain account."""
    primary_address: Address
    secondary_address: Address


@dataclass(frozen=True)
class AssetMapping:
    """Equivalence between a primary-chain and a secondary-chain contract."""
    primary_contract: Address
    secondary_contract: Address
    creator_proof: bytes
    deployment_tx_hash: str


@dataclass(frozen=True)
class WithdrawalReceipt:
    """Withdrawal receipt held by the secondary-chain gateway."""
    owner: Address
    token_kind: TokenKind
    token_contract: Address
    amount: int
    nonce: int
    signature: Optional[bytes] = None

    def __post_init__(self):
        if self.token_kind == TokenKind.ETH and not self.token_contract.is_zero():
            raise InvalidReceipt(
                f"ETH receipt must carry the native sentinel, got {self.token_contract}"
            )
        if self.token_kind == TokenKind.ERC20 and self.token_contract.is_zero():
            raise InvalidReceipt("ERC20 receipt cannot carry the native sentinel")

    @property
    def is_signed(self) -> bool:
        return bool(self.signature)


class WithdrawalState(Enum):
    """Derived state of a withdrawal flow."""
    NEW = "new"
    INITIATED = "initiated"
    AWAITING_SIGNATURE = "awaiting_signature"
    SIGNED = "signed"
    FINALIZED = "finalized"
    PENDING = "pending"
    FAILED = "failed"


# Decoded gateway events

@dataclass
class TokenWithdrawalSigned:
    """Attestor signed a withdrawal receipt on the secondary chain."""
    token_owner: Address
    token_contract: Address
    token_kind: TokenKind
    value: int
    signature: bytes
    block_number: int = 0
    log: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class NativeReceived:
    """ETH deposited into the primary gateway."""
    sender: Address
    amount: int
    block_number: int
    log: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class AssetReceived:
    """ERC20 tokens deposited into the primary gateway."""
    sender: Address
    amount: int
    contract: Address
    block_number: int
    log: Dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass
class TokenWithdrawn:
    """Withdrawal finalized on the primary gateway."""
    owner: Address
    kind: TokenKind
    contract: Address
    value: int
    block_number: int
    log: Dict[str, Any] = field(default_factory=dict, repr=False)
