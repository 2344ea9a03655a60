from typing import Any, Optional

from pydantic import BaseModel, Field

from callback_relay.schemas.callback_kind import CallbackKind


class CallbackRecord(BaseModel):
    """
    One webhook received from the payment gateway.

    The correlation store stamps received_at and timestamp on save. received_at
    comes from the relay clock and only grows, so it doubles as the long-poll
    cursor; timestamp is wall-clock UTC in ISO 8601 for display.
    """
    transaction_code: Optional[str] = Field(default=None, description="Correlation key of the payment attempt")
    kind: CallbackKind = CallbackKind.UNKNOWN
    payload: dict[str, Any] = Field(default_factory=dict, description="Inbound body, forwarded verbatim")
    received_at: float = 0.0
    timestamp: str = ""
    consumed: bool = False
    client_id: Optional[str] = None
    next_action: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
