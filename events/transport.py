"""Log delivery transports: websocket subscriptions and HTTP polling."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional

import aiohttp

from chain.node import ChainNode
from core.errors import BridgeError, RPCError, TransportError

logger = logging.getLogger(__name__)


class WebSocketLogStream:
    """Raw logs pushed by an ``eth_subscribe("logs")`` subscription."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse, subscription_id: str):
        self._session = session
        self._ws = ws
        self.subscription_id = subscription_id
        self._closed = False

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        return self._messages()

    async def _messages(self) -> AsyncIterator[Dict[str, Any]]:
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                payload = json.loads(msg.data)
                if payload.get("method") != "eth_subscription":
                    continue
                params = payload.get("params", {})
                if params.get("subscription") == self.subscription_id:
                    yield params["result"]
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"Websocket error: {self._ws.exception()}")
        raise TransportError("Websocket closed by remote end")

    async def close(self) -> None:
        """Unsubscribe and close the connection."""
        if self._closed:
            return
        self._closed = True

        if not self._ws.closed:
            try:
                await self._ws.send_json({
                    "jsonrpc": "2.0",
                    "id": 2,
                    "method": "eth_unsubscribe",
                    "params": [self.subscription_id],
                })
            except (aiohttp.ClientError, ConnectionResetError) as e:
                logger.debug(f"Could not send eth_unsubscribe for {self.subscription_id}: {e}")
            await self._ws.close()
        await self._session.close()


class WebSocketLogTransport:
    """Opens log subscriptions over a JSON-RPC websocket endpoint."""

    def __init__(self, ws_url: str, heartbeat: float = 30.0, handshake_timeout: float = 10.0):
        self.ws_url = ws_url
        self.heartbeat = heartbeat
        self.handshake_timeout = handshake_timeout

    async def open(self, log_filter: Dict[str, Any]) -> WebSocketLogStream:
        """Subscribe to logs matching ``log_filter``.

        Raises:
            TransportError: If the connection or subscription fails
        """
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(self.ws_url, heartbeat=self.heartbeat)
            await ws.send_json({
                "jsonrpc": "2.0",
                "id": 1,
                "method": "eth_subscribe",
                "params": ["logs", log_filter],
            })
            reply = await ws.receive_json(timeout=self.handshake_timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, TypeError) as e:
            await session.close()
            raise TransportError(f"Failed to subscribe at {self.ws_url}: {e}") from e
        except BaseException:
            await session.close()
            raise

        if reply.get("error"):
            await ws.close()
            await session.close()
            raise TransportError(f"eth_subscribe rejected: {reply['error']}")

        subscription_id = reply["result"]
        logger.debug(f"Opened log subscription {subscription_id} at {self.ws_url}")
        return WebSocketLogStream(session, ws, subscription_id)


class PollingLogStream:
    """Raw logs obtained by polling ``eth_getLogs`` for new blocks."""

    def __init__(
        self,
        node: ChainNode,
        log_filter: Dict[str, Any],
        from_block: int,
        poll_interval: float,
        on_advance: Optional[Callable[[int], None]] = None,
    ):
        self._node = node
        self._filter = log_filter
        self._next_block = from_block
        self._poll_interval = poll_interval
        self._on_advance = on_advance
        self._closed = False

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        return self._poll()

    async def _poll(self) -> AsyncIterator[Dict[str, Any]]:
        while not self._closed:
            try:
                head = await self._node.get_block_number()
                if head >= self._next_block:
                    logs = await self._node.get_logs({
                        **self._filter,
                        "fromBlock": self._next_block,
                        "toBlock": head,
                    })
                    self._next_block = head + 1
                    if self._on_advance is not None:
                        self._on_advance(self._next_block)
                    for log in logs:
                        yield log
            except RPCError as e:
                raise TransportError(f"Log polling failed: {e}") from e

            await asyncio.sleep(self._poll_interval)

    async def close(self) -> None:
        self._closed = True


class PollingLogTransport:
    """Delivers logs for nodes that only speak HTTP.

    The next unpolled block is remembered per filter, so a stream reopened
    after a fault resumes where the previous one stopped instead of skipping
    the blocks mined in between.
    """

    def __init__(self, node: ChainNode, poll_interval: float = 5.0):
        self.node = node
        self.poll_interval = poll_interval
        self._next_blocks: Dict[str, int] = {}

    async def open(self, log_filter: Dict[str, Any]) -> PollingLogStream:
        key = json.dumps(log_filter, sort_keys=True)
        from_block = self._next_blocks.get(key)
        if from_block is None:
            try:
                head = await self.node.get_block_number()
            except BridgeError as e:
                raise TransportError(f"Failed to start log polling: {e}") from e
            from_block = self._next_blocks[key] = head + 1
        else:
            logger.debug(f"Resuming log polling from block {from_block}")

        def advance(next_block: int) -> None:
            self._next_blocks[key] = next_block

        return PollingLogStream(self.node, log_filter, from_block, self.poll_interval, on_advance=advance)


def make_log_transport(node: ChainNode, ws_url: Optional[str], poll_interval: float = 5.0):
    """Pick the websocket transport when an endpoint is configured, polling otherwise."""
    if ws_url:
        return WebSocketLogTransport(ws_url)
    return PollingLogTransport(node, poll_interval)
