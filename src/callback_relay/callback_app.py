from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from callback_relay import relay_logger as logger
from callback_relay.api import admin_router, callback_router, correlation_router, stream_router
from callback_relay.config import RELAY_HOST, RELAY_PORT
from callback_relay.services import CallbackRelay


def create_app(relay: CallbackRelay = None) -> FastAPI:
    """Build the relay application around a relay instance (a fresh one by default)."""
    relay = relay if relay is not None else CallbackRelay()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        # Startup
        logger.info(f"Callback Relay starting on {RELAY_HOST}:{RELAY_PORT}")
        await relay.start()
        yield
        # Shutdown
        logger.info("Callback Relay shutting down")
        await relay.stop()

    app = FastAPI(
        title="Payment Callback Relay",
        description="Receives payment gateway webhooks and delivers them by claim, long poll or stream",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(callback_router)
    app.include_router(correlation_router)
    app.include_router(stream_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            **relay.stats(),
        }

    return app


app = create_app()

