"""
Pytest configuration and in-memory chain fakes for the bridge tests.
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest
from eth_abi import encode

from chain.abi import ContractFunction
from chain.node import TransactionHandle
from core.errors import InvalidSignature, RPCError, TransportError, WithdrawalAlreadyPending
from core.types import Address, Asset, TokenKind, TokenWithdrawalSigned, WithdrawalReceipt
from events.subscription import Subscription

PRIMARY_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OTHER_KEY = "0x8da4ef21b864d2cc526dbdb2a120bd2874c36c9d0a1fb7f8c63d7f7a8b41de8f"

GATEWAY = "0x1111111111111111111111111111111111111111"
SECONDARY_GATEWAY = "0x2222222222222222222222222222222222222222"
MAPPER = "0x3333333333333333333333333333333333333333"
NATIVE_COIN = "0x4444444444444444444444444444444444444444"
PRIMARY_TOKEN = "0x5555555555555555555555555555555555555555"
SECONDARY_TOKEN = "0x6666666666666666666666666666666666666666"

OWNER = Address.from_hex("eth", "0x00000000000000000000000000000000000000aa")
OTHER_OWNER = Address.from_hex("eth", "0x00000000000000000000000000000000000000bb")

ETH_ASSET = Asset(
    symbol="ETH",
    kind=TokenKind.ETH,
    primary_contract=Address.zero("eth"),
    secondary_contract=Address.from_hex("default", NATIVE_COIN),
)
TOKEN_ASSET = Asset(
    symbol="TKN",
    kind=TokenKind.ERC20,
    primary_contract=Address.from_hex("eth", PRIMARY_TOKEN),
    secondary_contract=Address.from_hex("default", SECONDARY_TOKEN),
)


FINALIZE_GAS_COST = 100000 * 1_000_000_000


def tx_hash(n: int) -> str:
    return "0x" + format(n, "064x")


class FakeChainNode:
    """ChainNode stand-in answering contract calls from registered results."""

    def __init__(self, chain_id: int = 1, block_number: int = 100):
        self.chain_id = chain_id
        self.block_number = block_number
        self.results: Dict[Tuple[str, str], Tuple[ContractFunction, tuple]] = {}
        self.call_log: List[Tuple[str, str]] = []
        self.estimated: List[Dict[str, Any]] = []
        self.estimate_error: Optional[RPCError] = None
        self.raw_transactions: List[str] = []
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.balances: Dict[str, int] = {}
        self.logs: List[Dict[str, Any]] = []
        self.log_filters: List[Dict[str, Any]] = []

    def on_call(self, contract: str, function: ContractFunction, *values: Any) -> None:
        self.results[(contract.lower(), "0x" + function.selector.hex())] = (function, values)

    def mine(self, status: int = 1) -> str:
        """Record a mined transaction and return its hash."""
        hash_ = tx_hash(len(self.receipts) + 1)
        self.receipts[hash_] = {
            "transactionHash": hash_,
            "blockNumber": hex(self.block_number),
            "status": hex(status),
        }
        return hash_

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        self.call_log.append((to.lower(), data))
        function, values = self.results[(to.lower(), data[:10])]
        return "0x" + encode(list(function.outputs), list(values)).hex()

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        self.estimated.append(tx)
        if self.estimate_error:
            raise self.estimate_error
        return 100000

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def get_block_number(self) -> int:
        return self.block_number

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return self.balances.get(address, 0)

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return len(self.raw_transactions)

    async def get_gas_price(self) -> int:
        return 1_000_000_000

    async def send_raw_transaction(self, raw_tx: str) -> str:
        self.raw_transactions.append(raw_tx)
        return self.mine()

    async def get_transaction(self, hash_: str) -> Optional[Dict[str, Any]]:
        return self.transactions.get(hash_)

    async def get_transaction_receipt(self, hash_: str) -> Optional[Dict[str, Any]]:
        return self.receipts.get(hash_)

    async def get_logs(self, log_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.log_filters.append(log_filter)
        return list(self.logs)


class FakeSigner:
    """Signer that records transactions instead of signing them."""

    def __init__(self, address: str):
        self.address = address
        self.sent: List[Dict[str, Any]] = []

    async def send_transaction(self, node: FakeChainNode, tx: Dict[str, Any]) -> TransactionHandle:
        self.sent.append(tx)
        return TransactionHandle(node.mine(), node)


_DROP = object()


class FakeLogStream:
    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.close_count = 0

    def __aiter__(self):
        return self._logs()

    async def _logs(self):
        while True:
            log = await self.queue.get()
            if log is _DROP:
                raise TransportError("connection reset")
            yield log

    async def close(self) -> None:
        self.close_count += 1


class FakeLogTransport:
    """Log transport delivering whatever the test emits."""

    def __init__(self):
        self.streams: List[FakeLogStream] = []
        self.filters: List[Dict[str, Any]] = []

    @property
    def opens(self) -> int:
        return len(self.streams)

    async def open(self, log_filter: Dict[str, Any]) -> FakeLogStream:
        stream = FakeLogStream()
        self.streams.append(stream)
        self.filters.append(log_filter)
        return stream

    def emit(self, log: Dict[str, Any]) -> None:
        for stream in self.streams:
            if stream.close_count == 0:
                stream.queue.put_nowait(log)

    def drop(self) -> None:
        for stream in self.streams:
            if stream.close_count == 0:
                stream.queue.put_nowait(_DROP)


async def wait_until(condition, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() >= deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class FakeHandle:
    def __init__(self, tx_hash: str, description: str = ""):
        self.tx_hash = tx_hash
        self.description = description
        self.waits = 0

    async def wait(self, confirmations: int = 1, **kwargs) -> Dict[str, Any]:
        self.waits += 1
        return {"transactionHash": self.tx_hash, "status": "0x1"}


class FakeLedger:
    """Shared on-chain state of both gateways plus the attestor."""

    def __init__(self, owner: Address = OWNER):
        self.owner = owner
        self.primary_nonce = 0
        self.receipt: Optional[WithdrawalReceipt] = None
        self.transport = FakeLogTransport()
        self.finalized: List[Tuple[int, bytes, Optional[Address]]] = []
        self.initiated: List[Tuple[int, TokenKind, Optional[Address]]] = []
        self.auto_sign_delay: Optional[float] = None
        # Balances keyed by primary-chain contract (the zero address for ETH)
        self.primary_balances: Dict[Address, int] = {}
        self.secondary_balances: Dict[Address, int] = {}
        self.gas_cost = FINALIZE_GAS_COST
        self._tx = 0

    def next_handle(self, description: str) -> FakeHandle:
        self._tx += 1
        return FakeHandle(tx_hash(self._tx), description)

    def credit(self, balances: Dict[Address, int], contract: Address, amount: int) -> None:
        balances[contract] = balances.get(contract, 0) + amount

    def relay_withdrawn(self) -> None:
        """Attestor relays the primary chain's TokenWithdrawn, clearing the receipt."""
        self.receipt = None

    def sign(self, signature: bytes = b"\x01" * 65) -> TokenWithdrawalSigned:
        """Attestor writes its signature into the receipt."""
        receipt = self.receipt
        self.receipt = WithdrawalReceipt(
            owner=receipt.owner,
            token_kind=receipt.token_kind,
            token_contract=receipt.token_contract,
            amount=receipt.amount,
            nonce=receipt.nonce,
            signature=signature,
        )
        return TokenWithdrawalSigned(
            token_owner=receipt.owner,
            token_contract=receipt.token_contract,
            token_kind=receipt.token_kind,
            value=receipt.amount,
            signature=signature,
        )

    def emit_signed(self, event: TokenWithdrawalSigned) -> None:
        self.transport.emit({"event": event})

    async def _sign_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self.emit_signed(self.sign())


class FakePrimaryGateway:
    def __init__(self, ledger: FakeLedger):
        self.ledger = ledger
        self.address = ledger.owner
        self.finalize_error: Optional[Exception] = None

    async def balance_of(self, contract: Address) -> int:
        return self.ledger.primary_balances.get(contract, 0)

    async def get_withdrawal_nonce(self, owner: Optional[Address] = None) -> int:
        return self.ledger.primary_nonce

    async def finalize_withdrawal(
        self, amount: int, signature: bytes, token_contract: Optional[Address] = None
    ) -> FakeHandle:
        if self.finalize_error:
            raise self.finalize_error
        ledger = self.ledger
        receipt = ledger.receipt
        # The gateway verifies the signature against the current nonce
        if receipt is None or receipt.signature != signature or receipt.nonce != ledger.primary_nonce:
            raise InvalidSignature("invalid signature")
        ledger.finalized.append((amount, signature, token_contract))
        ledger.primary_nonce += 1
        ledger.credit(ledger.primary_balances, token_contract or Address.zero("eth"), amount)
        ledger.credit(ledger.primary_balances, Address.zero("eth"), -ledger.gas_cost)
        # The receipt stays on the secondary chain until the attestor relays the withdrawal
        return ledger.next_handle("withdraw")


class FakeSecondaryGateway:
    def __init__(self, ledger: FakeLedger, assets=(ETH_ASSET, TOKEN_ASSET)):
        self.ledger = ledger
        self.address = Address("default", ledger.owner.local)
        self._primary_contracts = {asset.secondary_contract: asset.primary_contract for asset in assets}
        self.subscriptions: List[Subscription] = []

    def _primary_contract(self, contract: Optional[Address]) -> Address:
        if contract is None or contract.is_zero():
            return Address.zero("eth")
        return self._primary_contracts[contract]

    async def balance_of(self, contract: Address) -> int:
        return self.ledger.secondary_balances.get(self._primary_contract(contract), 0)

    async def get_withdrawal_receipt(self, owner: Optional[Address] = None) -> Optional[WithdrawalReceipt]:
        return self.ledger.receipt

    async def initiate_withdrawal(
        self, amount: int, token_kind: TokenKind, token_contract: Optional[Address] = None
    ) -> FakeHandle:
        if self.ledger.receipt is not None:
            raise WithdrawalAlreadyPending("pending withdrawal")
        self.ledger.initiated.append((amount, token_kind, token_contract))
        primary_contract = self._primary_contract(None if token_kind == TokenKind.ETH else token_contract)
        self.ledger.credit(self.ledger.secondary_balances, primary_contract, -amount)
        self.ledger.receipt = WithdrawalReceipt(
            owner=self.ledger.owner,
            token_kind=token_kind,
            token_contract=primary_contract,
            amount=amount,
            nonce=self.ledger.primary_nonce,
        )
        if self.ledger.auto_sign_delay is not None:
            asyncio.get_running_loop().create_task(self.ledger._sign_later(self.ledger.auto_sign_delay))
        return self.ledger.next_handle("withdrawETH" if token_kind == TokenKind.ETH else "withdrawERC20")

    async def subscribe_withdrawal_signed(self) -> Subscription:
        subscription = Subscription(
            self.ledger.transport,
            {"address": SECONDARY_GATEWAY, "topics": []},
            lambda log: log["event"],
            reconnect_delay=0,
        )
        await subscription.start()
        self.subscriptions.append(subscription)
        return subscription


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def primary_gateway(ledger) -> FakePrimaryGateway:
    return FakePrimaryGateway(ledger)


@pytest.fixture
def secondary_gateway(ledger) -> FakeSecondaryGateway:
    return FakeSecondaryGateway(ledger)


@pytest.fixture
def chain_node() -> FakeChainNode:
    return FakeChainNode()
