from enum import Enum


class CallbackKind(str, Enum):
    PREVIEW_READY     = "preview-ready"
    AMOUNT_REQUIRED   = "amount-required"
    PAYMENT_COMPLETED = "payment-completed"
    PAYMENT_CANCELLED = "payment-cancelled"
    REFUND_ISSUED     = "refund-issued"
    UNKNOWN           = "unknown"
