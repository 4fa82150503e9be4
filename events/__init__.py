"""Chain event delivery."""

from events.subscription import EventSubscriber, Subscription, wait_for_first_match
from events.transport import PollingLogTransport, WebSocketLogTransport, make_log_transport

__all__ = [
    "EventSubscriber",
    "PollingLogTransport",
    "Subscription",
    "WebSocketLogTransport",
    "make_log_transport",
    "wait_for_first_match",
]
