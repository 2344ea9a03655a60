from .admin_router import admin_router
from .callback_router import callback_router
from .correlation_router import correlation_router
from .stream_router import stream_router

__all__ = [
    "admin_router",
    "callback_router",
    "correlation_router",
    "stream_router",
]
