"""
Registry of long-poll waiters.

A waiter is registered with a criterion (an exact transaction code, or a
"since" cursor) and a timeout. It resolves exactly once: with [record] when a
matching callback is saved, or with [] when its deadline timer fires. The
future and the timer are always torn down together.

The registry belongs to the event loop it is used from. Every mutation is a
synchronous section on that loop, so resolution, deadline and cancellation
can never interleave.
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Optional

from callback_relay import relay_logger as logger
from callback_relay.schemas import CallbackRecord


@dataclass(frozen=True)
class Criterion:
    """What a waiter is waiting for: one transaction code, or anything newer than a cursor."""

    transaction_code: Optional[str] = None
    since: Optional[float] = None

    def __post_init__(self):
        if (self.transaction_code is None) == (self.since is None):
            raise ValueError("Criterion needs exactly one of transaction_code or since")

    @classmethod
    def for_code(cls, transaction_code: str) -> "Criterion":
        return cls(transaction_code=transaction_code)

    @classmethod
    def newer_than(cls, since: float) -> "Criterion":
        return cls(since=since)

    def matches(self, record: CallbackRecord) -> bool:
        if self.transaction_code is not None:
            return record.transaction_code == self.transaction_code
        return record.received_at > self.since

    def __str__(self) -> str:
        if self.transaction_code is not None:
            return f"code={self.transaction_code}"
        return f"since={self.since}"


@dataclass(eq=False)
class Waiter:
    """Handle returned by SubscriberRegistry.register(); await wait() for the result."""

    id: str
    criterion: Criterion
    registered_at: float
    deadline: float
    client_id: Optional[str] = None
    _future: asyncio.Future = field(default=None, repr=False)
    _timer: Optional[asyncio.TimerHandle] = field(default=None, repr=False)
    _registry: "SubscriberRegistry" = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self._future.done()

    def accepts(self, record: CallbackRecord) -> bool:
        if self.client_id is not None and record.client_id != self.client_id:
            return False
        return self.criterion.matches(record)

    async def wait(self) -> list[CallbackRecord]:
        """
        Suspend until the waiter resolves.

        Returns:
            [record] on a match, [] on timeout

        Cancelling the awaiting task unregisters the waiter and releases its timer.
        """
        try:
            return await self._future
        except asyncio.CancelledError:
            self._registry.cancel(self.id)
            raise


class SubscriberRegistry:
    """Tracks pending waiters and resolves them as callbacks arrive."""

    def __init__(self) -> None:
        self._waiters: dict[str, Waiter] = {}

    def register(self, criterion: Criterion, timeout: float, client_id: str = None) -> Waiter:
        """
        Register a waiter that resolves on a match or after timeout seconds.

        Must be called from the running event loop.
        """
        loop = asyncio.get_running_loop()
        now = loop.time()
        waiter = Waiter(
            id=uuid.uuid4().hex,
            criterion=criterion,
            registered_at=now,
            deadline=now + timeout,
            client_id=client_id,
            _future=loop.create_future(),
            _registry=self,
        )
        waiter._timer = loop.call_at(waiter.deadline, self._on_deadline, waiter.id)
        self._waiters[waiter.id] = waiter

        logger.debug(
            f"Waiter registered: id={waiter.id}, {criterion}, "
            f"timeout={timeout}s, waiting={len(self._waiters)}"
        )
        return waiter

    def _finish(self, waiter: Waiter, records: list[CallbackRecord]) -> bool:
        self._waiters.pop(waiter.id, None)
        if waiter._timer is not None:
            waiter._timer.cancel()
        if waiter._future.done():
            return False
        waiter._future.set_result(records)
        return True

    def _on_deadline(self, waiter_id: str) -> None:
        waiter = self._waiters.get(waiter_id)
        if waiter is not None and self._finish(waiter, []):
            logger.debug(f"Waiter timed out: id={waiter_id}, {waiter.criterion}")

    def has_code_waiter(self, record: CallbackRecord) -> bool:
        """True if a live waiter is waiting on this record's exact transaction code."""
        return any(
            waiter.criterion.transaction_code is not None and waiter.accepts(record)
            for waiter in self._waiters.values()
        )

    def resolve(self, record: CallbackRecord) -> list[Waiter]:
        """
        Resolve every live waiter that matches record.

        Returns:
            The waiters resolved by this call
        """
        resolved = []
        for waiter in list(self._waiters.values()):
            if waiter.accepts(record) and self._finish(waiter, [record]):
                resolved.append(waiter)

        if resolved:
            logger.info(
                f"Resolved {len(resolved)} waiter(s) for transaction_code={record.transaction_code}"
            )
        return resolved

    def cancel(self, waiter_id: str) -> bool:
        """Remove a waiter on caller cancellation. Returns False if it already resolved."""
        waiter = self._waiters.pop(waiter_id, None)
        if waiter is None:
            return False
        if waiter._timer is not None:
            waiter._timer.cancel()
        if not waiter._future.done():
            waiter._future.cancel()
        logger.debug(f"Waiter cancelled: id={waiter_id}")
        return True

    def expire_overdue(self, now: float = None) -> int:
        """Resolve with [] any waiter past its deadline whose own timer has not fired."""
        if now is None:
            now = asyncio.get_running_loop().time()

        overdue = [waiter for waiter in self._waiters.values() if waiter.deadline <= now]
        expired = sum(1 for waiter in overdue if self._finish(waiter, []))
        if expired:
            logger.warning(f"Expired {expired} overdue waiter(s)")
        return expired

    def cancel_all(self) -> int:
        count = 0
        for waiter_id in list(self._waiters):
            if self.cancel(waiter_id):
                count += 1
        return count

    def __len__(self) -> int:
        return len(self._waiters)

    def stats(self) -> dict[str, int]:
        by_code = sum(1 for w in self._waiters.values() if w.criterion.transaction_code is not None)
        return {
            "waiting": len(self._waiters),
            "by_code": by_code,
            "since": len(self._waiters) - by_code,
        }
