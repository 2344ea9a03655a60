"""
Broadcast hub for open stream connections.

Every saved callback is pushed to every open connection, independent of
whether it was claimed through the correlation store. There is no replay: a
connection only sees callbacks pushed while it is open.
"""
import asyncio
from typing import Any

from callback_relay import relay_logger as logger
from callback_relay.config import KEEP_ALIVE_SECONDS
from callback_relay.schemas import CallbackRecord
from callback_relay.services.stream_connections import (
    StreamConnection,
    callback_event,
    connection_event,
    ping_event,
)


class BroadcastHub:
    """
    Manages open stream connections keyed by connection id.

    Delivery is best-effort: a connection that fails a send is removed and
    never affects delivery to the others.
    """

    def __init__(self) -> None:
        self._connections: dict[str, StreamConnection] = {}
        self._lock = asyncio.Lock()

    async def open(self, connection: StreamConnection) -> StreamConnection:
        """Register a connection and announce its id to it."""
        async with self._lock:
            self._connections[connection.id] = connection
            total = len(self._connections)

        logger.info(f"Stream connected: connection_id={connection.id}, total_connections={total}")
        await self._deliver([connection], connection_event(connection.id))
        return connection

    async def push(self, record: CallbackRecord) -> int:
        """
        Send a callback to every open connection that accepts it.

        Returns:
            Number of connections the callback was delivered to
        """
        async with self._lock:
            targets = [c for c in self._connections.values() if c.accepts(record)]

        sent = await self._deliver(targets, callback_event(record))
        logger.info(
            f"Broadcast transaction_code={record.transaction_code} to "
            f"{sent}/{len(targets)} connection(s)"
        )
        return sent

    async def ping(self) -> int:
        """Send a keep-alive to every connection, dropping those that fail."""
        async with self._lock:
            targets = list(self._connections.values())
        return await self._deliver(targets, ping_event())

    async def _deliver(self, targets: list[StreamConnection], event: dict[str, Any]) -> int:
        sent_count = 0
        disconnected = []

        # Connections are sent to concurrently; a slow one only delays itself
        results = await asyncio.gather(
            *(connection.send(event) for connection in targets),
            return_exceptions=True,
        )
        for connection, result in zip(targets, results):
            if isinstance(result, ConnectionError):
                logger.warning(f"Failed to send {event['type']} to {connection.id}: {result}")
                disconnected.append(connection)
            elif isinstance(result, BaseException):
                raise result
            else:
                sent_count += 1

        for connection in disconnected:
            await self.close(connection.id)

        return sent_count

    async def close(self, connection_id: str) -> bool:
        """Remove a connection and close its transport. Returns False if it was not open."""
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            remaining = len(self._connections)

        if connection is None:
            return False

        await connection.close()
        logger.info(f"Stream disconnected: connection_id={connection_id}, remaining={remaining}")
        return True

    async def close_all(self) -> int:
        async with self._lock:
            connection_ids = list(self._connections)

        closed = 0
        for connection_id in connection_ids:
            if await self.close(connection_id):
                closed += 1
        return closed

    async def run_keep_alive(self, interval: float = KEEP_ALIVE_SECONDS) -> None:
        """Ping all connections every interval seconds until cancelled."""
        logger.info(f"Stream keep-alive started, interval={interval}s")
        try:
            while True:
                await asyncio.sleep(interval)
                if self._connections:
                    await self.ping()
        except asyncio.CancelledError:
            logger.info("Stream keep-alive stopped")
            raise

    def get_connection_count(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections
