"""
Claim-on-read correlation store for gateway callbacks.

Records are keyed by transaction code with last-write-wins semantics. A
successful get() claims the record, so two pollers racing on the same code
never both receive it. Records older than the TTL are invisible to lookups and
are dropped by evict_expired() or when a lookup finds them.
"""
import datetime
import threading
import time
from typing import Callable, Optional

from callback_relay import relay_logger as logger
from callback_relay.config import RECORD_TTL_SECONDS
from callback_relay.errors import InvalidRecordError
from callback_relay.schemas import CallbackRecord

# Smallest step between two received_at values when the clock does not advance
CLOCK_STEP = 1e-6


class CorrelationStore:
    """
    In-memory map from transaction code to the latest callback record.

    All access goes through one lock; callers only ever see copies of the
    stored records.
    """

    def __init__(
        self,
        ttl: float = RECORD_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._records: dict[str, CallbackRecord] = {}
        self._lock = threading.Lock()
        self._last_received_at = float("-inf")

    def now(self) -> float:
        """Current relay clock reading, comparable with received_at."""
        return self._clock()

    def _is_expired(self, record: CallbackRecord, now: float) -> bool:
        return now - record.received_at > self.ttl

    def _live(self, code: str, now: float) -> Optional[CallbackRecord]:
        record = self._records.get(code)
        if record is None:
            return None
        if self._is_expired(record, now):
            del self._records[code]
            logger.info(f"Callback expired and removed: transaction_code={code}")
            return None
        return record

    def save(self, record: CallbackRecord) -> CallbackRecord:
        """
        Insert or overwrite the record for its transaction code.

        Resets consumed and stamps received_at/timestamp.

        Raises:
            InvalidRecordError: if the record has no transaction code
        """
        code = (record.transaction_code or "").strip()
        if not code:
            logger.error("Rejected callback without transaction code")
            raise InvalidRecordError("Callback is missing a transaction code")

        with self._lock:
            received_at = self._clock()
            if received_at <= self._last_received_at:
                received_at = self._last_received_at + CLOCK_STEP
            self._last_received_at = received_at

            stored = record.model_copy(deep=True, update={
                "transaction_code": code,
                "received_at": received_at,
                "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
                "consumed": False,
            })
            replaced = code in self._records
            self._records[code] = stored

        logger.info(
            f"Stored callback: transaction_code={code}, kind={stored.kind.value}, "
            f"replaced={replaced}"
        )
        return stored.model_copy(deep=True)

    def get(self, code: str) -> Optional[CallbackRecord]:
        """
        Claim the unconsumed record for code.

        Returns:
            The record, already marked consumed, or None if it is absent,
            consumed or expired.
        """
        with self._lock:
            record = self._live(code, self._clock())
            if record is None:
                return None
            if record.consumed:
                logger.debug(f"Callback already consumed: transaction_code={code}")
                return None
            record.consumed = True
            claimed = record.model_copy(deep=True)

        logger.info(f"Claimed callback: transaction_code={code}")
        return claimed

    def peek(self, code: str) -> Optional[CallbackRecord]:
        """Look up a live record without claiming it. Diagnostics only."""
        with self._lock:
            record = self._live(code, self._clock())
            return record.model_copy(deep=True) if record is not None else None

    def mark_consumed(self, code: str) -> bool:
        """Claim a record without reading it. Returns False if no live record exists."""
        with self._lock:
            record = self._live(code, self._clock())
            if record is None:
                logger.info(f"Cannot mark consumed, callback not found: transaction_code={code}")
                return False
            record.consumed = True

        logger.info(f"Marked callback consumed: transaction_code={code}")
        return True

    def since(self, cursor: float, client_id: str = None) -> list[CallbackRecord]:
        """Live records received after cursor, oldest first, regardless of consumed."""
        with self._lock:
            now = self._clock()
            records = [
                record.model_copy(deep=True)
                for record in self._records.values()
                if record.received_at > cursor
                and not self._is_expired(record, now)
                and (client_id is None or record.client_id == client_id)
            ]
        return sorted(records, key=lambda r: r.received_at)

    def list_live(self) -> list[CallbackRecord]:
        """All live records, newest first."""
        with self._lock:
            now = self._clock()
            records = [
                record.model_copy(deep=True)
                for record in self._records.values()
                if not self._is_expired(record, now)
            ]
        return sorted(records, key=lambda r: r.received_at, reverse=True)

    def clear(self, code: str = None) -> int:
        """Remove one record, or every record when code is None. Returns the number removed."""
        with self._lock:
            if code is None:
                removed = len(self._records)
                self._records.clear()
            else:
                removed = 1 if self._records.pop(code, None) is not None else 0

        logger.info(f"Cleared {removed} callback(s)" + (f" for transaction_code={code}" if code else ""))
        return removed

    def evict_expired(self) -> int:
        """Drop every record older than the TTL. Returns the number evicted."""
        with self._lock:
            now = self._clock()
            expired = [code for code, record in self._records.items() if self._is_expired(record, now)]
            for code in expired:
                del self._records[code]

        if expired:
            logger.info(f"Evicted {len(expired)} expired callback(s)")
        return len(expired)

    def stats(self) -> dict[str, int]:
        with self._lock:
            total = len(self._records)
            consumed = sum(1 for record in self._records.values() if record.consumed)
        return {
            "total": total,
            "unconsumed": total - consumed,
            "consumed": consumed,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
