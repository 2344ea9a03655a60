import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from callback_relay import relay_logger as logger
from callback_relay.api.dependencies import get_relay
from callback_relay.config import LONG_POLL_MAX_TIMEOUT_MS, LONG_POLL_TIMEOUT_MS
from callback_relay.errors import NotFoundError
from callback_relay.services import CallbackRelay
from callback_relay.utils.response_format import ResponseFormat
from callback_relay.utils.status import Status

correlation_router = APIRouter(tags=["Callback Delivery"])

DISCONNECT_CHECK_SECONDS = 1.0


def _not_found(e: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content=ResponseFormat(
            status=Status.NOT_FOUND,
            message=str(e),
            data={"transaction_code": e.transaction_code}
        ).to_dict()
    )


@correlation_router.get("/correlation")
async def get_callback(
    code: Optional[str] = Query(None, description="Transaction code to claim"),
    relay: CallbackRelay = Depends(get_relay),
):
    """
    Claim the unread callback for a transaction code.

    Without a code, list every live callback (read or unread) for diagnostics.
    """
    if code is None:
        records = relay.store.list_live()
        return JSONResponse(
            content=ResponseFormat(
                status=Status.SUCCESS,
                message=f"Found {len(records)} callbacks",
                data=[record.to_dict() for record in records]
            ).to_dict()
        )

    try:
        record = relay.claim(code)
    except NotFoundError as e:
        logger.debug(f"No unread callback for transaction_code={code}")
        return _not_found(e)

    return JSONResponse(
        content=ResponseFormat(
            status=Status.SUCCESS,
            message="SUCCESS",
            data=record.to_dict()
        ).to_dict()
    )


@correlation_router.get("/correlation/peek")
async def peek_callback(
    code: str = Query(..., description="Transaction code to inspect"),
    relay: CallbackRelay = Depends(get_relay),
):
    """Look at a callback without claiming it."""
    try:
        record = relay.peek(code)
    except NotFoundError as e:
        return _not_found(e)

    return JSONResponse(
        content=ResponseFormat(
            status=Status.SUCCESS,
            message="SUCCESS",
            data=record.to_dict()
        ).to_dict()
    )


@correlation_router.get("/longpoll")
async def long_poll(
    request: Request,
    code: Optional[str] = Query(None, description="Wait for this transaction code"),
    since: Optional[float] = Query(None, description="Wait for anything newer than this cursor"),
    timeout_ms: int = Query(LONG_POLL_TIMEOUT_MS, alias="timeoutMs", ge=1, le=LONG_POLL_MAX_TIMEOUT_MS),
    client_id: Optional[str] = Query(None, description="Only callbacks declared for this client"),
    relay: CallbackRelay = Depends(get_relay),
):
    """
    Hold the request until a matching callback arrives or the timeout elapses.

    A timeout is a normal outcome: records is empty and cursor is the value to
    send as `since` on the next call.
    """
    if code is not None and since is not None:
        return JSONResponse(
            status_code=400,
            content=ResponseFormat(
                status=Status.FAILURE,
                message="Pass either code or since, not both",
                data=None
            ).to_dict()
        )

    poll = asyncio.create_task(relay.long_poll(
        code=code,
        since=since,
        timeout=timeout_ms / 1000,
        client_id=client_id,
    ))
    while not poll.done():
        await asyncio.wait({poll}, timeout=DISCONNECT_CHECK_SECONDS)
        if not poll.done() and await request.is_disconnected():
            # Cancelling the poll unregisters its waiter
            poll.cancel()
            try:
                await poll
            except asyncio.CancelledError:
                logger.info(f"Long poll client went away: code={code}, since={since}")
                return JSONResponse(status_code=499, content=None)

    records, cursor = poll.result()
    return JSONResponse(
        content=ResponseFormat(
            status=Status.SUCCESS,
            message="SUCCESS" if records else "No callbacks before timeout",
            data={
                "records": [record.to_dict() for record in records],
                "cursor": cursor,
            }
        ).to_dict()
    )
