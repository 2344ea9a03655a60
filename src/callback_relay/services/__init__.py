from .broadcast_hub import BroadcastHub
from .correlation_store import CorrelationStore
from .eviction_sweeper import EvictionSweeper
from .relay_service import CallbackRelay
from .stream_connections import SseConnection, StreamConnection, WebSocketConnection
from .subscriber_registry import Criterion, SubscriberRegistry, Waiter
from .webhook_log import WebhookLog, WebhookLogEntry

__all__ = [
    "BroadcastHub",
    "CallbackRelay",
    "CorrelationStore",
    "Criterion",
    "EvictionSweeper",
    "SseConnection",
    "StreamConnection",
    "SubscriberRegistry",
    "Waiter",
    "WebSocketConnection",
    "WebhookLog",
    "WebhookLogEntry",
]
