from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from callback_relay import relay_logger as logger
from callback_relay.api.dependencies import get_relay
from callback_relay.services import CallbackRelay, SseConnection, WebSocketConnection
from callback_relay.services.stream_connections import format_sse

stream_router = APIRouter(tags=["Callback Stream"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


async def _stream_events(relay: CallbackRelay, connection: SseConnection) -> AsyncGenerator[str, None]:
    await relay.open_stream(connection)
    try:
        async for event in connection.events():
            yield format_sse(event)
    finally:
        await relay.close_stream(connection.id)


@stream_router.get("/stream")
async def open_stream(
    client_id: Optional[str] = Query(None, description="Only callbacks declared for this client"),
    relay: CallbackRelay = Depends(get_relay),
):
    """
    Server-Sent Events stream of callbacks.

    The first event announces the connection id; after that the stream carries
    `callback` events as webhooks arrive and `ping` events while idle.
    """
    connection = SseConnection(client_id=client_id)
    return StreamingResponse(
        _stream_events(relay, connection),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@stream_router.websocket("/ws/stream")
async def websocket_stream(websocket: WebSocket, client_id: Optional[str] = Query(None)):
    """
    WebSocket variant of /stream carrying the same events.

    Anything the client sends is ignored; it only keeps the socket alive.
    """
    relay: CallbackRelay = websocket.app.state.relay

    await websocket.accept()
    connection = WebSocketConnection(websocket, client_id=client_id)
    await relay.open_stream(connection)

    try:
        while True:
            data = await websocket.receive_text()
            logger.debug(f"Received from stream client [{connection.id}]: {data}")

    except WebSocketDisconnect:
        # Socket is gone; skip the close handshake
        connection.closed = True
        logger.info(f"Stream client disconnected: {connection.id}")

    finally:
        await relay.close_stream(connection.id)
