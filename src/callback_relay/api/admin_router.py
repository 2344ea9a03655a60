from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from callback_relay.api.dependencies import get_relay
from callback_relay.errors import NotFoundError
from callback_relay.schemas import AdminRequest
from callback_relay.services import CallbackRelay
from callback_relay.utils.response_format import ResponseFormat
from callback_relay.utils.status import Status

admin_router = APIRouter(tags=["Admin"])


@admin_router.post("/admin")
async def run_admin_action(data: AdminRequest, relay: CallbackRelay = Depends(get_relay)):
    """Run cleanup, clear or mark-consumed and return the resulting stats."""
    try:
        stats = relay.admin(data.action, data.code)
        return JSONResponse(
            content=ResponseFormat(
                status=Status.SUCCESS,
                message=f"Action '{data.action.value}' completed",
                data=stats
            ).to_dict()
        )
    except NotFoundError as e:
        return JSONResponse(
            status_code=404,
            content=ResponseFormat(
                status=Status.NOT_FOUND,
                message=str(e),
                data=relay.stats()
            ).to_dict()
        )
    except ValueError as e:
        return JSONResponse(
            status_code=400,
            content=ResponseFormat(
                status=Status.FAILURE,
                message=str(e),
                data=None
            ).to_dict()
        )


@admin_router.get("/admin/stats")
async def get_stats(relay: CallbackRelay = Depends(get_relay)):
    return JSONResponse(
        content=ResponseFormat(
            status=Status.SUCCESS,
            message="SUCCESS",
            data=relay.stats()
        ).to_dict()
    )


@admin_router.get("/webhook-logs")
async def list_webhook_logs(
    tx_code: Optional[str] = Query(None, alias="txCode", description="Filter by transaction code"),
    relay: CallbackRelay = Depends(get_relay),
):
    """Recent inbound webhook requests, newest first."""
    entries = relay.webhook_log.entries(tx_code)
    return JSONResponse(
        content=ResponseFormat(
            status=Status.SUCCESS,
            message=f"Found {len(entries)} logs",
            data=[entry.to_dict() for entry in entries]
        ).to_dict()
    )


@admin_router.delete("/webhook-logs")
async def clear_webhook_logs(relay: CallbackRelay = Depends(get_relay)):
    cleared = relay.webhook_log.clear()
    return JSONResponse(
        content=ResponseFormat(
            status=Status.SUCCESS,
            message="Logs cleared",
            data={"cleared": cleared}
        ).to_dict()
    )
