from callback_relay.utils.response_format import ResponseFormat
from callback_relay.utils.status import Status

__all__ = ["ResponseFormat", "Status"]
