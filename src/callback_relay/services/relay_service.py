"""
Callback relay: one data model, three delivery strategies.

Flow for an inbound webhook:
1. Interpret the body into a CallbackRecord
2. Save it in the correlation store and resolve matching long-poll waiters,
   as one step relative to new long-poll registrations
3. Push it to every open stream connection

Consumers pick a strategy: claim() pulls from the store, long_poll() waits on
the subscriber registry, and stream connections receive pushes from the hub.
"""
import asyncio
from typing import Any, Mapping, Optional

from callback_relay import relay_logger as logger
from callback_relay.config import KEEP_ALIVE_SECONDS, LONG_POLL_TIMEOUT_MS
from callback_relay.errors import InvalidRecordError, NotFoundError
from callback_relay.schemas import AdminAction, CallbackRecord
from callback_relay.services.broadcast_hub import BroadcastHub
from callback_relay.services.correlation_store import CorrelationStore
from callback_relay.services.eviction_sweeper import EvictionSweeper
from callback_relay.services.stream_connections import StreamConnection
from callback_relay.services.subscriber_registry import Criterion, SubscriberRegistry
from callback_relay.services.webhook_interpreter import extract_client_id, interpret
from callback_relay.services.webhook_log import WebhookLog, WebhookLogEntry
from callback_relay.utils.logger import mask_headers


class CallbackRelay:

    def __init__(
        self,
        store: CorrelationStore = None,
        registry: SubscriberRegistry = None,
        hub: BroadcastHub = None,
        sweeper: EvictionSweeper = None,
        webhook_log: WebhookLog = None,
        keep_alive_interval: float = KEEP_ALIVE_SECONDS,
    ) -> None:
        self.store = store if store is not None else CorrelationStore()
        self.registry = registry if registry is not None else SubscriberRegistry()
        self.hub = hub if hub is not None else BroadcastHub()
        self.sweeper = sweeper if sweeper is not None else EvictionSweeper(self.store, self.registry)
        self.webhook_log = webhook_log if webhook_log is not None else WebhookLog()
        self.keep_alive_interval = keep_alive_interval
        # Save+resolve and check+register never interleave
        self._ingest_lock = asyncio.Lock()
        self._keep_alive_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(self, body: Any, headers: Mapping[str, str] = None) -> CallbackRecord:
        """
        Store a webhook, wake matching waiters and broadcast it.

        Args:
            body: Decoded JSON body of the webhook
            headers: Request headers, used for X-Client-Id and the webhook log

        Returns:
            The stored record

        Raises:
            InvalidRecordError: if the body is not an object or has no transaction code
        """
        headers = dict(headers or {})

        try:
            if not isinstance(body, Mapping):
                raise InvalidRecordError("Webhook body must be a JSON object")

            record = interpret(body, headers)
            async with self._ingest_lock:
                stored = self.store.save(record)
                # A waiter on this exact code takes delivery; the pull path must not repeat it
                if self.registry.has_code_waiter(stored):
                    claimed = self.store.get(stored.transaction_code)
                    if claimed is not None:
                        stored = claimed
                self.registry.resolve(stored)
        except InvalidRecordError as e:
            self.webhook_log.append(WebhookLogEntry(
                method="POST",
                status="error",
                body=body,
                headers=mask_headers(headers),
                client_id=extract_client_id(body, headers) if isinstance(body, Mapping) else None,
                error=str(e),
            ))
            raise

        self.webhook_log.append(WebhookLogEntry(
            method="POST",
            status="success",
            body=body,
            headers=mask_headers(headers),
            client_id=stored.client_id,
            transaction_code=stored.transaction_code,
            kind=stored.kind.value,
            next_action=stored.next_action,
        ))

        await self.hub.push(stored)
        return stored

    def record_probe(self, headers: Mapping[str, str] = None) -> WebhookLogEntry:
        """Log a test call to the webhook endpoint."""
        headers = dict(headers or {})
        entry = self.webhook_log.append(WebhookLogEntry(
            method="GET",
            status="success",
            body={"test": True, "message": "Test webhook call"},
            headers=mask_headers(headers),
            client_id=extract_client_id({}, headers),
        ))
        logger.info(f"Webhook probe received: log_id={entry.id}")
        return entry

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def claim(self, code: str) -> CallbackRecord:
        """
        Claim the unread callback for a transaction code.

        Raises:
            NotFoundError: if the callback is absent, already consumed or expired
        """
        record = self.store.get(code)
        if record is None:
            raise NotFoundError(code)
        return record

    def peek(self, code: str) -> CallbackRecord:
        record = self.store.peek(code)
        if record is None:
            raise NotFoundError(code, f"No callback for transaction code '{code}'")
        return record

    # ------------------------------------------------------------------
    # Long poll
    # ------------------------------------------------------------------

    async def long_poll(
        self,
        code: str = None,
        since: float = None,
        timeout: float = LONG_POLL_TIMEOUT_MS / 1000,
        client_id: str = None,
    ) -> tuple[list[CallbackRecord], float]:
        """
        Wait for a callback for code, or for any callback newer than since.

        A code match claims the record like claim() does. A since match does
        not claim; it is a notification feed.

        Returns:
            (records, cursor): records is empty on timeout; pass cursor as
            since on the next call
        """
        if code is not None and since is not None:
            raise ValueError("Pass either code or since, not both")
        if code is None and since is None:
            since = 0.0

        async with self._ingest_lock:
            if code is not None:
                criterion = Criterion.for_code(code)
                records = self._claim_for_client(code, client_id)
            else:
                criterion = Criterion.newer_than(since)
                records = self.store.since(since, client_id)

            if records:
                logger.debug(f"Long poll answered immediately: {criterion}, records={len(records)}")
                return records, self._cursor(records, since)

            waiter = self.registry.register(criterion, timeout, client_id)

        records = await waiter.wait()
        return records, self._cursor(records, since)

    def _claim_for_client(self, code: str, client_id: Optional[str]) -> list[CallbackRecord]:
        if client_id is not None:
            current = self.store.peek(code)
            if current is None or current.client_id != client_id:
                return []
        record = self.store.get(code)
        return [record] if record is not None else []

    def _cursor(self, records: list[CallbackRecord], since: Optional[float]) -> float:
        if records:
            return max(record.received_at for record in records)
        # Keep the caller's cursor so callbacks saved between polls are not skipped
        return since if since is not None else self.store.now()

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    async def open_stream(self, connection: StreamConnection) -> StreamConnection:
        return await self.hub.open(connection)

    async def close_stream(self, connection_id: str) -> bool:
        return await self.hub.close(connection_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def admin(self, action: AdminAction, code: str = None) -> dict[str, int]:
        """
        Run an operational action and return the resulting stats.

        Raises:
            NotFoundError: mark-consumed for a code with no live callback
            ValueError: mark-consumed without a code
        """
        action = AdminAction(action)
        logger.info(f"Admin action: {action.value}" + (f", code={code}" if code else ""))

        if action == AdminAction.CLEANUP:
            self.sweeper.force_cleanup()
        elif action == AdminAction.CLEAR:
            self.store.clear(code)
        elif action == AdminAction.MARK_CONSUMED:
            if not code:
                raise ValueError("mark-consumed requires a transaction code")
            if not self.store.mark_consumed(code):
                raise NotFoundError(code, f"No callback for transaction code '{code}'")

        return self.stats()

    def stats(self) -> dict[str, int]:
        return {
            **self.store.stats(),
            "waiters": len(self.registry),
            "connections": self.hub.get_connection_count(),
        }

    async def start(self) -> None:
        """Start the eviction sweeper and the stream keep-alive."""
        self.sweeper.start()
        if self._keep_alive_task is None or self._keep_alive_task.done():
            self._keep_alive_task = asyncio.create_task(
                self.hub.run_keep_alive(self.keep_alive_interval)
            )
        logger.info("Callback relay started")

    async def stop(self) -> None:
        """Stop background tasks and release every waiter and connection."""
        await self.sweeper.stop()

        if self._keep_alive_task and not self._keep_alive_task.done():
            self._keep_alive_task.cancel()
            try:
                await self._keep_alive_task
            except asyncio.CancelledError:
                pass
        self._keep_alive_task = None

        cancelled = self.registry.cancel_all()
        closed = await self.hub.close_all()
        logger.info(f"Callback relay stopped: cancelled_waiters={cancelled}, closed_connections={closed}")
