from fastapi import Request

from callback_relay.services import CallbackRelay


def get_relay(request: Request) -> CallbackRelay:
    """Relay instance owned by the running application."""
    return request.app.state.relay
