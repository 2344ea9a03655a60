from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from callback_relay import relay_logger as logger
from callback_relay.api.dependencies import get_relay
from callback_relay.errors import InvalidRecordError
from callback_relay.services import CallbackRelay
from callback_relay.utils.response_format import ResponseFormat
from callback_relay.utils.status import Status

callback_router = APIRouter(prefix="/callback", tags=["Gateway Callback"])


@callback_router.post("")
async def receive_callback(request: Request, relay: CallbackRelay = Depends(get_relay)):
    """
    Handle a webhook from the payment gateway.

    The callback is:
    1. Stored in the correlation store under its transaction code
    2. Delivered to long-poll waiters for that code (or for anything newer)
    3. Broadcast to every open stream connection
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    logger.info(f"Received callback from {request.client.host if request.client else 'unknown'}")

    try:
        record = await relay.ingest(body, request.headers)
        return JSONResponse(
            content=ResponseFormat(
                status=Status.SUCCESS,
                message="Callback received",
                data={
                    "transaction_code": record.transaction_code,
                    "kind": record.kind.value,
                    "next_action": record.next_action,
                    "client_id": record.client_id,
                }
            ).to_dict()
        )
    except InvalidRecordError as e:
        return JSONResponse(
            status_code=400,
            content=ResponseFormat(
                status=Status.INVALID_RECORD,
                message=str(e),
                data=None
            ).to_dict()
        )
    except Exception as e:
        logger.error(f"Failed to process callback: {e}")
        return JSONResponse(
            status_code=500,
            content=ResponseFormat(
                status=Status.UNKNOWN_ERROR,
                message=str(e),
                data=None
            ).to_dict()
        )


@callback_router.get("")
async def probe_callback(request: Request, relay: CallbackRelay = Depends(get_relay)):
    """Test call to check the webhook endpoint is reachable."""
    entry = relay.record_probe(request.headers)
    return JSONResponse(
        content=ResponseFormat(
            status=Status.SUCCESS,
            message="Webhook endpoint is active",
            data=entry.to_dict()
        ).to_dict()
    )
