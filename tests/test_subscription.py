"""
Tests for event subscriptions and the wait-with-timeout primitive.
"""
import asyncio

import pytest

from chain.contracts import TOKEN_WITHDRAWAL_SIGNED
from core.errors import TransportError
from events.subscription import EventSubscriber, Subscription, wait_for_first_match
from tests.conftest import FakeLogTransport, wait_until


def make_subscription(transport: FakeLogTransport, decoder=None) -> Subscription:
    return Subscription(
        transport,
        {"address": "0x2222222222222222222222222222222222222222", "topics": []},
        decoder or (lambda log: log),
        reconnect_delay=0,
    )


class TestWaitForFirstMatch:
    """Tests for wait_for_first_match."""

    @pytest.mark.asyncio
    async def test_returns_only_matching_event(self):
        """Should skip events for another owner and return the owner's event."""
        transport = FakeLogTransport()
        subscription = make_subscription(transport)
        await subscription.start()

        transport.emit({"owner": "B", "value": 1})
        transport.emit({"owner": "A", "value": 2})

        event = await wait_for_first_match(subscription, lambda e: e["owner"] == "A", timeout=1.0)

        assert event == {"owner": "A", "value": 2}

    @pytest.mark.asyncio
    async def test_timeout_returns_none_and_tears_down_once(self):
        """Should yield None after the deadline and close the stream exactly once."""
        transport = FakeLogTransport()
        subscription = make_subscription(transport)
        await subscription.start()
        transport.emit({"owner": "B"})

        loop = asyncio.get_running_loop()
        started = loop.time()
        event = await wait_for_first_match(subscription, lambda e: e["owner"] == "A", timeout=0.2)

        assert event is None
        assert loop.time() - started >= 0.19
        assert subscription.closed
        assert [stream.close_count for stream in transport.streams] == [1]

        # Closing again is a no-op
        await subscription.close()
        assert transport.streams[0].close_count == 1

    @pytest.mark.asyncio
    async def test_no_event_after_timeout(self):
        """Should not deliver events emitted after the deadline."""
        transport = FakeLogTransport()
        subscription = make_subscription(transport)
        await subscription.start()

        assert await wait_for_first_match(subscription, lambda e: True, timeout=0.05) is None
        transport.emit({"owner": "A"})

        with pytest.raises(StopAsyncIteration):
            await subscription.__anext__()

    @pytest.mark.asyncio
    async def test_cancellation_closes_subscription(self):
        """Should tear the subscription down when the caller cancels."""
        transport = FakeLogTransport()
        subscription = make_subscription(transport)
        await subscription.start()

        task = asyncio.create_task(wait_for_first_match(subscription, lambda e: True, timeout=60))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert subscription.closed
        assert transport.streams[0].close_count == 1

    @pytest.mark.asyncio
    async def test_decoder_error_propagates(self):
        """Should raise decoder failures to the waiter."""
        transport = FakeLogTransport()

        def decoder(log):
            raise ValueError("undecodable log")

        subscription = make_subscription(transport, decoder)
        await subscription.start()
        transport.emit({"owner": "A"})

        with pytest.raises(ValueError):
            await wait_for_first_match(subscription, lambda e: True, timeout=1.0)
        assert subscription.closed


class TestSubscription:
    """Tests for resubscription and log handling."""

    @pytest.mark.asyncio
    async def test_resubscribes_after_transport_fault(self):
        """Should reopen the stream with the same filter after a dropped connection."""
        transport = FakeLogTransport()
        subscription = make_subscription(transport)
        await subscription.start()

        transport.drop()
        await wait_until(lambda: transport.opens == 2)
        transport.emit({"owner": "A"})

        event = await wait_for_first_match(subscription, lambda e: True, timeout=1.0)

        assert event == {"owner": "A"}
        assert subscription.reconnects == 1
        assert transport.filters[0] == transport.filters[1]
        assert transport.streams[0].close_count == 1

    @pytest.mark.asyncio
    async def test_skips_removed_logs(self):
        """Should drop logs removed by a reorg."""
        transport = FakeLogTransport()
        subscription = make_subscription(transport)
        await subscription.start()

        transport.emit({"owner": "A", "removed": True})
        transport.emit({"owner": "A", "removed": False, "n": 2})

        event = await wait_for_first_match(subscription, lambda e: True, timeout=1.0)
        assert event["n"] == 2

    @pytest.mark.asyncio
    async def test_initial_open_failure_propagates(self):
        """Should raise if the first subscription cannot be opened."""
        class FailingTransport:
            async def open(self, log_filter):
                raise TransportError("refused")

        subscription = Subscription(FailingTransport(), {}, lambda log: log)
        with pytest.raises(TransportError):
            await subscription.start()


class TestEventSubscriber:
    @pytest.mark.asyncio
    async def test_subscribe_builds_filter(self):
        """Should filter on the contract address and event topic."""
        transport = FakeLogTransport()
        subscriber = EventSubscriber(transport, reconnect_delay=0)

        subscription = await subscriber.subscribe(
            TOKEN_WITHDRAWAL_SIGNED, "0x2222222222222222222222222222222222222222", lambda log: log
        )

        assert transport.filters == [{
            "address": "0x2222222222222222222222222222222222222222",
            "topics": [TOKEN_WITHDRAWAL_SIGNED.topic],
        }]
        await subscription.close()
