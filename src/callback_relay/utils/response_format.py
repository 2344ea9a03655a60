from typing import Any

from callback_relay.utils.status import Status


class ResponseFormat:
    """Envelope for every JSON response of the relay: {status, message, data}."""

    def __init__(
        self,
        status: Status = Status.SUCCESS,
        message: str = "SUCCESS",
        data: Any = None,
    ) -> None:
        self.status = status
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "data": self.data,
        }
