"""Cancellable event subscriptions over chain logs."""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol, TypeVar

from chain.abi import ContractEvent
from core.errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LogStream(Protocol):
    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...


class LogTransport(Protocol):
    async def open(self, log_filter: Dict[str, Any]) -> LogStream:
        ...


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


_CLOSED = object()


class Subscription:
    """A live feed of decoded events matching one log filter.

    Iterate it with ``async for``; events arrive in whatever order the
    transport delivers them. Transport faults are handled by resubscribing
    with the same filter. ``close()`` tears the underlying subscription down
    and is safe to call any number of times.
    """

    def __init__(
        self,
        transport: LogTransport,
        log_filter: Dict[str, Any],
        decoder: Callable[[Dict[str, Any]], Any],
        reconnect_delay: float = 1.0,
    ):
        self._transport = transport
        self.log_filter = log_filter
        self._decoder = decoder
        self._reconnect_delay = reconnect_delay
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._closed = False
        self.reconnects = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Open the first stream and start pumping events.

        Raises:
            TransportError: If the initial subscription cannot be opened
        """
        if self._task is not None or self._closed:
            return
        stream = await self._transport.open(self.log_filter)
        self._task = asyncio.create_task(self._pump(stream))

    async def _pump(self, stream: Optional[LogStream]) -> None:
        while True:
            try:
                if stream is None:
                    stream = await self._transport.open(self.log_filter)
                async for raw in stream:
                    if raw.get("removed"):
                        logger.debug("Skipping log removed by reorg")
                        continue
                    await self._queue.put(self._decoder(raw))
                raise TransportError("Log stream ended")
            except TransportError as e:
                self.reconnects += 1
                logger.warning(
                    f"Log subscription lost ({e}); resubscribing in {self._reconnect_delay}s"
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Log subscription failed: {e}", exc_info=True)
                await self._queue.put(_Failure(e))
                return
            finally:
                if stream is not None:
                    await stream.close()
                    stream = None

            await asyncio.sleep(self._reconnect_delay)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self._closed:
            raise StopAsyncIteration
        if self._task is None:
            await self.start()

        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            raise item.error
        return item

    async def close(self) -> None:
        """Unsubscribe. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.debug(f"Closed subscription {self.log_filter.get('topics')}")


class EventSubscriber:
    """Creates subscriptions for contract events on one chain."""

    def __init__(self, transport: LogTransport, reconnect_delay: float = 1.0):
        self.transport = transport
        self.reconnect_delay = reconnect_delay

    async def subscribe(
        self,
        event: ContractEvent,
        address: str,
        decoder: Callable[[Dict[str, Any]], Any],
    ) -> Subscription:
        """Subscribe to ``event`` emitted by the contract at ``address``.

        The subscription is registered with the node before this returns, so
        events emitted by transactions submitted afterwards are not missed.
        """
        log_filter = {"address": address, "topics": [event.topic]}
        subscription = Subscription(self.transport, log_filter, decoder, self.reconnect_delay)
        await subscription.start()
        logger.debug(f"Subscribed to {event.name} at {address}")
        return subscription


async def wait_for_first_match(
    subscription: Subscription,
    predicate: Callable[[T], bool],
    timeout: float,
) -> Optional[T]:
    """Wait for the first event satisfying ``predicate``.

    Non-matching events are skipped. Exactly one outcome is produced: the
    matching event, or ``None`` once ``timeout`` seconds pass. The
    subscription is closed before this returns or raises, including when the
    caller cancels the wait.

    Args:
        subscription: Subscription to consume
        predicate: Match test applied to each decoded event
        timeout: Deadline in seconds

    Returns:
        The first matching event, or None on timeout
    """
    async def first_match() -> Optional[T]:
        async for event in subscription:
            if predicate(event):
                return event
            logger.debug(f"Ignoring non-matching event {event!r}")
        return None

    try:
        return await asyncio.wait_for(first_match(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.info(f"No matching event within {timeout}s")
        return None
    finally:
        await subscription.close()
