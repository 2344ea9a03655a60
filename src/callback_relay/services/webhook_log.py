"""Bounded history of inbound webhook requests for the test client's log panel."""
import datetime
import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from callback_relay.config import WEBHOOK_LOG_LIMIT


@dataclass
class WebhookLogEntry:
    method: str
    status: str  # "success" or "error"
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    client_id: Optional[str] = None
    transaction_code: Optional[str] = None
    kind: Optional[str] = None
    next_action: Optional[str] = None
    error: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class WebhookLog:
    """Newest-first log that keeps at most `limit` entries."""

    def __init__(self, limit: int = WEBHOOK_LOG_LIMIT) -> None:
        self._entries: deque[WebhookLogEntry] = deque(maxlen=limit)
        self._lock = threading.Lock()

    def append(self, entry: WebhookLogEntry) -> WebhookLogEntry:
        with self._lock:
            self._entries.appendleft(entry)
        return entry

    def entries(self, transaction_code: str = None) -> list[WebhookLogEntry]:
        with self._lock:
            entries = list(self._entries)
        if transaction_code is None:
            return entries
        return [entry for entry in entries if entry.transaction_code == transaction_code]

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)
