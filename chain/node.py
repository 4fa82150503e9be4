"""JSON-RPC client for EVM-style chain nodes."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from core.errors import ConfirmationTimeout, RPCError, TransactionReverted, TransportError

logger = logging.getLogger(__name__)


@dataclass
class ChainNodeConfig:
    """Configuration for a chain node connection."""
    rpc_url: str
    chain_id: Optional[int] = None  # numeric EVM chain id, verified on start when set
    request_timeout: float = 30.0


def to_rpc_quantity(value: int) -> str:
    return hex(value)


def to_rpc_transaction(tx: Dict[str, Any]) -> Dict[str, Any]:
    """Hex-encode the integer fields of a transaction dict for JSON-RPC."""
    encoded = {}
    for key, value in tx.items():
        if isinstance(value, int) and not isinstance(value, bool):
            encoded[key] = to_rpc_quantity(value)
        else:
            encoded[key] = value
    return encoded


class ChainNode:
    """Manages a JSON-RPC connection to a chain node.

    One instance per chain side; all reads and raw transaction submission go
    through here.
    """

    def __init__(self, config: ChainNodeConfig):
        """Create a new chain RPC client.

        Args:
            config: Configuration for the node connection
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = None
        self._is_running = False
        self._request_id = 0
        logger.info(f"Initializing chain RPC client at {config.rpc_url}")

    async def start(self) -> None:
        """Connect to the node and verify its chain id."""
        if self._is_running:
            logger.info("Already connected to node")
            return

        logger.info(f"Connecting to node at {self.config.rpc_url}")

        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        self._session = aiohttp.ClientSession(timeout=timeout)

        try:
            chain_id = await self.get_chain_id()
        except Exception as e:
            await self._session.close()
            self._session = None
            raise TransportError(f"Failed to connect to node at {self.config.rpc_url}: {e}") from e

        if self.config.chain_id is not None and chain_id != self.config.chain_id:
            await self._session.close()
            self._session = None
            raise TransportError(
                f"Node at {self.config.rpc_url} reports chain id {chain_id}, "
                f"expected {self.config.chain_id}"
            )

        self._is_running = True
        logger.info(f"Connected to node (chain id {chain_id})")

    async def stop(self) -> None:
        """Disconnect from the node."""
        if not self._is_running:
            return

        logger.info("Disconnecting from node...")

        if self._session:
            await self._session.close()
            self._session = None

        self._is_running = False
        logger.info("Disconnected from node")

    def is_running(self) -> bool:
        """Check if the node connection is active."""
        return self._is_running

    async def call_method(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Make a JSON-RPC call.

        Args:
            method: RPC method name
            params: Positional parameters for the call

        Returns:
            The ``result`` member of the response

        Raises:
            TransportError: If the request cannot be delivered
            RPCError: If the node returns an error object
        """
        if not self._session:
            raise TransportError("Session not initialized - call start() first")

        self._request_id += 1
        request_body = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params if params is not None else [],
        }

        try:
            async with self._session.post(self.config.rpc_url, json=request_body) as response:
                response_data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Failed to send RPC request {method}: {e}") from e

        error = response_data.get("error")
        if error:
            raise RPCError(
                error.get("message", str(error)),
                method=method,
                details=str(error.get("data", "")),
                code=error.get("code", 0),
            )

        if "result" not in response_data:
            raise RPCError("Missing result in RPC response", method=method)

        return response_data["result"]

    async def get_chain_id(self) -> int:
        return int(await self.call_method("eth_chainId"), 16)

    async def get_block_number(self) -> int:
        """Get the current head block number."""
        return int(await self.call_method("eth_blockNumber"), 16)

    async def get_balance(self, address: str, block: str = "latest") -> int:
        return int(await self.call_method("eth_getBalance", [address, block]), 16)

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        return int(await self.call_method("eth_getTransactionCount", [address, block]), 16)

    async def get_gas_price(self) -> int:
        return int(await self.call_method("eth_gasPrice"), 16)

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Get a transaction by hash, or None if the node does not know it."""
        return await self.call_method("eth_getTransactionByHash", [tx_hash])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Get a transaction receipt, or None while the transaction is unmined."""
        return await self.call_method("eth_getTransactionReceipt", [tx_hash])

    async def get_logs(self, log_filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Get logs matching a filter.

        Integer ``fromBlock``/``toBlock`` values are hex-encoded here.
        """
        params = dict(log_filter)
        for key in ("fromBlock", "toBlock"):
            if isinstance(params.get(key), int):
                params[key] = to_rpc_quantity(params[key])
        return await self.call_method("eth_getLogs", [params]) or []

    async def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        """Execute a read-only contract call."""
        return await self.call_method("eth_call", [{"to": to, "data": data}, block])

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        """Estimate gas for a transaction; reverts surface here as RPCError."""
        return int(await self.call_method("eth_estimateGas", [to_rpc_transaction(tx)]), 16)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        """Broadcast a signed transaction and return its hash."""
        if not raw_tx.startswith("0x"):
            raw_tx = "0x" + raw_tx
        return await self.call_method("eth_sendRawTransaction", [raw_tx])

    async def __aenter__(self) -> "ChainNode":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


class TransactionHandle:
    """A submitted transaction that can be waited on for confirmation."""

    def __init__(self, tx_hash: str, node: ChainNode, description: str = ""):
        self.tx_hash = tx_hash
        self.node = node
        self.description = description
        self.receipt: Optional[Dict[str, Any]] = None

    async def wait(
        self,
        confirmations: int = 1,
        timeout: float = 300.0,
        poll_interval: float = 2.0,
    ) -> Dict[str, Any]:
        """Wait until the transaction is mined with ``confirmations`` blocks.

        Returns:
            The transaction receipt

        Raises:
            TransactionReverted: If the transaction was mined but failed
            ConfirmationTimeout: If the deadline passes first
        """
        if self.receipt is not None:
            return self.receipt

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            receipt = await self.node.get_transaction_receipt(self.tx_hash)
            if receipt is not None and receipt.get("blockNumber") is not None:
                mined_at = int(receipt["blockNumber"], 16)
                head = await self.node.get_block_number()
                if head - mined_at + 1 >= confirmations:
                    if int(receipt.get("status", "0x1"), 16) == 0:
                        raise TransactionReverted(
                            f"Transaction {self.tx_hash} reverted ({self.description})",
                            tx_hash=self.tx_hash,
                        )
                    self.receipt = receipt
                    logger.debug(f"Transaction {self.tx_hash[:18]}... confirmed at block {mined_at}")
                    return receipt

            if loop.time() >= deadline:
                raise ConfirmationTimeout(
                    f"Transaction {self.tx_hash} not confirmed within {timeout}s"
                )
            await asyncio.sleep(poll_interval)

    def __repr__(self) -> str:
        return f"TransactionHandle({self.tx_hash!r}, {self.description!r})"
