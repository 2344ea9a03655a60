"""Transports for broadcast stream subscribers: Server-Sent Events and WebSocket."""
import asyncio
import datetime
import json
import time
import uuid
from typing import Any, AsyncIterator, Optional

from fastapi import WebSocket

from callback_relay import relay_logger as logger
from callback_relay.config import STREAM_QUEUE_SIZE, STREAM_SEND_TIMEOUT_SECONDS
from callback_relay.errors import DeliveryError
from callback_relay.schemas import CallbackRecord


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def connection_event(connection_id: str) -> dict[str, Any]:
    return {
        "type": "connection",
        "connection_id": connection_id,
        "message": "Stream connection established",
        "timestamp": _now_iso(),
    }


def ping_event() -> dict[str, Any]:
    return {"type": "ping", "timestamp": _now_iso()}


def callback_event(record: CallbackRecord) -> dict[str, Any]:
    return {"type": "callback", "data": record.to_dict(), "timestamp": _now_iso()}


def format_sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


class StreamConnection:
    """One long-lived broadcast subscriber. Subclasses provide send() and close()."""

    def __init__(self, client_id: Optional[str] = None) -> None:
        self.id = uuid.uuid4().hex
        self.opened_at = time.time()
        self.client_id = client_id
        self.closed = False

    def accepts(self, record: CallbackRecord) -> bool:
        return self.client_id is None or record.client_id == self.client_id

    async def send(self, event: dict[str, Any]) -> None:
        """
        Deliver one event.

        Raises:
            DeliveryError: if the connection can no longer accept events
        """
        raise NotImplementedError

    async def close(self) -> None:
        self.closed = True


class SseConnection(StreamConnection):
    """
    Queue-backed connection drained by an SSE response generator.

    The queue is bounded; a subscriber that falls STREAM_QUEUE_SIZE events
    behind is treated as dead.
    """

    def __init__(self, client_id: Optional[str] = None, max_queue: int = STREAM_QUEUE_SIZE) -> None:
        super().__init__(client_id)
        self._queue: asyncio.Queue[Optional[dict[str, Any]]] = asyncio.Queue(maxsize=max_queue)

    async def send(self, event: dict[str, Any]) -> None:
        if self.closed:
            raise DeliveryError(f"Stream connection {self.id} is closed")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as exc:
            raise DeliveryError(f"Stream connection {self.id} is not draining events") from exc

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # events() notices the closed flag on its next item
            pass

    async def events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield queued events until the connection is closed."""
        while True:
            event = await self._queue.get()
            if event is None or self.closed:
                return
            yield event


class WebSocketConnection(StreamConnection):
    """Connection that writes events straight to an accepted WebSocket."""

    def __init__(
        self,
        websocket: WebSocket,
        client_id: Optional[str] = None,
        send_timeout: float = STREAM_SEND_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(client_id)
        self.websocket = websocket
        self.send_timeout = send_timeout

    async def send(self, event: dict[str, Any]) -> None:
        if self.closed:
            raise DeliveryError(f"Stream connection {self.id} is closed")
        try:
            await asyncio.wait_for(self.websocket.send_json(event), timeout=self.send_timeout)
        except asyncio.TimeoutError as exc:
            raise DeliveryError(
                f"WebSocket {self.id} did not accept an event within {self.send_timeout}s"
            ) from exc
        except Exception as exc:
            raise DeliveryError(f"Failed to send to WebSocket {self.id}: {exc}") from exc

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await asyncio.wait_for(self.websocket.close(), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"WebSocket {self.id} did not close within {self.send_timeout}s")
        except RuntimeError as exc:
            logger.debug(f"WebSocket {self.id} already closed: {exc}")
