"""
Periodic cleanup of expired callbacks and overdue waiters.

Stream connections are not swept; the hub drops them when a keep-alive fails.
"""
import asyncio
from typing import Optional

from callback_relay import relay_logger as logger
from callback_relay.config import SWEEP_INTERVAL_SECONDS
from callback_relay.services.correlation_store import CorrelationStore
from callback_relay.services.subscriber_registry import SubscriberRegistry


class EvictionSweeper:

    def __init__(
        self,
        store: CorrelationStore,
        registry: SubscriberRegistry,
        interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self.store = store
        self.registry = registry
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    def sweep(self) -> dict[str, int]:
        """
        Run one cleanup pass.

        Must be called from the event loop that owns the registry.

        Returns:
            Counts of evicted records and expired waiters
        """
        evicted = self.store.evict_expired()
        expired = self.registry.expire_overdue()
        logger.debug(f"Sweep finished: evicted_records={evicted}, expired_waiters={expired}")
        return {"evicted_records": evicted, "expired_waiters": expired}

    def force_cleanup(self) -> dict[str, int]:
        """Run a sweep now and return the store stats afterwards."""
        logger.info("Forced cleanup requested")
        self.sweep()
        return self.store.stats()

    async def _run(self) -> None:
        logger.info(f"Eviction sweeper started, interval={self.interval}s, ttl={self.store.ttl}s")
        try:
            while True:
                await asyncio.sleep(self.interval)
                self.sweep()
        except asyncio.CancelledError:
            logger.info("Eviction sweeper cancelled")
            raise

    def start(self) -> asyncio.Task:
        """Start the sweeper as a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Stop the sweeper background task."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Eviction sweeper stopped")
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
