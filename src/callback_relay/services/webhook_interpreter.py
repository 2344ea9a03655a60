"""
Turns a raw gateway webhook body into a CallbackRecord.

The gateway reports a (type, status) pair; the test client cares about which
screen to show next, so each known pair maps to a CallbackKind and a next
action. A body may also name its kind explicitly.
"""
from typing import Any, Mapping, Optional

from callback_relay.schemas import CallbackKind, CallbackRecord

TRANSACTION_CODE_FIELDS = ("transactionCode", "transaction_code", "txCode")
CLIENT_ID_HEADER = "x-client-id"

_KIND_BY_TYPE_STATUS: dict[tuple[str, str], CallbackKind] = {
    ("PREVIEW", "READY_TO_CONFIRM"): CallbackKind.PREVIEW_READY,
    ("PREVIEW", "WAITING_AMOUNT"): CallbackKind.AMOUNT_REQUIRED,
    ("CONFIRM", "COMPLETED"): CallbackKind.PAYMENT_COMPLETED,
    ("CONFIRM", "CANCELLED"): CallbackKind.PAYMENT_CANCELLED,
    ("CONFIRM", "REJECTED"): CallbackKind.PAYMENT_CANCELLED,
    ("CONFIRM", "FAILED"): CallbackKind.PAYMENT_CANCELLED,
    # the gateway spells it "REFOUNDED"
    ("REFUND", "REFOUNDED"): CallbackKind.REFUND_ISSUED,
    ("REFUND", "REFUNDED"): CallbackKind.REFUND_ISSUED,
    ("REFUND", "PARTIALLY_REFUNDED"): CallbackKind.REFUND_ISSUED,
}

NEXT_ACTIONS: dict[CallbackKind, str] = {
    CallbackKind.PREVIEW_READY: "show_confirmation",
    CallbackKind.AMOUNT_REQUIRED: "show_amount_input",
    CallbackKind.PAYMENT_COMPLETED: "show_success",
    CallbackKind.PAYMENT_CANCELLED: "show_cancellation",
    CallbackKind.REFUND_ISSUED: "show_refund_notification",
}


def extract_transaction_code(body: Mapping[str, Any]) -> Optional[str]:
    for field_name in TRANSACTION_CODE_FIELDS:
        value = body.get(field_name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def classify(body: Mapping[str, Any]) -> CallbackKind:
    """Pick the callback kind from an explicit "kind" field or the gateway type/status pair."""
    explicit = body.get("kind")
    if explicit is not None:
        try:
            return CallbackKind(str(explicit).lower())
        except ValueError:
            pass

    webhook_type = str(body.get("type", "")).upper()
    status = str(body.get("status", "")).upper()
    return _KIND_BY_TYPE_STATUS.get((webhook_type, status), CallbackKind.UNKNOWN)


def extract_client_id(body: Mapping[str, Any], headers: Mapping[str, str] = None) -> Optional[str]:
    client_id = body.get("clientId") or body.get("client_id")
    if not client_id and headers:
        client_id = {k.lower(): v for k, v in headers.items()}.get(CLIENT_ID_HEADER)
    return str(client_id) if client_id else None


def interpret(body: Mapping[str, Any], headers: Mapping[str, str] = None) -> CallbackRecord:
    """
    Build an unsaved CallbackRecord from a webhook body.

    The record keeps transaction_code None when the body has none; the
    correlation store rejects it on save.
    """
    kind = classify(body)
    return CallbackRecord(
        transaction_code=extract_transaction_code(body),
        kind=kind,
        payload=dict(body),
        client_id=extract_client_id(body, headers),
        next_action=NEXT_ACTIONS.get(kind),
    )
