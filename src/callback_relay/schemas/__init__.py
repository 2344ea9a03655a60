from .admin_schemas import AdminAction, AdminRequest
from .callback_kind import CallbackKind
from .callback_record import CallbackRecord

__all__ = [
    "AdminAction",
    "AdminRequest",
    "CallbackKind",
    "CallbackRecord",
]
