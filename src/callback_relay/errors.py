"""Domain errors raised by the relay components."""


class RelayError(Exception):
    """Base class for callback relay errors."""


class InvalidRecordError(RelayError, ValueError):
    """An inbound callback cannot be stored, usually because it has no transaction code."""


class NotFoundError(RelayError, LookupError):
    """No live, unconsumed record exists for the requested transaction code."""

    def __init__(self, transaction_code: str, message: str = None):
        self.transaction_code = transaction_code
        super().__init__(message or f"No unread callback for transaction code '{transaction_code}'")


class DeliveryError(RelayError, ConnectionError):
    """A stream connection could not accept an event; the hub drops the connection."""
