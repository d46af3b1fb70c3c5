"""
Xero token broker: OAuth authorization-code exchange, in-memory token storage and
invoice creation. Services are built once per app in create_app() and kept on app.state.
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from xero_broker.api_routes import router as api_router
from xero_broker.code_tracker import UsedCodeTracker
from xero_broker.config import Settings
from xero_broker.errors import XeroBrokerError
from xero_broker.exchange import ExchangeCoordinator
from xero_broker.logs import (
    configure_logging,
    get_request_id,
    install_fault_hooks,
    install_request_logging,
    log_async_exception,
)
from xero_broker.oauth_routes import router as oauth_router
from xero_broker.token_store import TokenStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Install the loop exception handler and run the used-code sweeper for the app's lifetime."""
    asyncio.get_running_loop().set_exception_handler(log_async_exception)
    sweeper = asyncio.create_task(app.state.used_codes.run_sweeper())
    logger.info("Used-code sweeper started (every %ss)", app.state.used_codes.sweep_interval)
    yield
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper


async def broker_error_handler(request: Request, exc: XeroBrokerError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(get_request_id(request)))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything uncategorized: full detail to the log, a short message to the client."""
    request_id = get_request_id(request)
    logger.exception("[%s] Unhandled error on %s %s", request_id, request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "kind": "InternalError", "details": None, "requestId": request_id},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    install_fault_hooks()
    app = FastAPI(title="Xero Broker", version="1.0.0", lifespan=lifespan)

    app.state.settings = settings
    app.state.token_store = TokenStore()
    app.state.used_codes = UsedCodeTracker(sweep_interval=settings.used_code_sweep_seconds)
    app.state.coordinator = ExchangeCoordinator(settings, app.state.token_store, app.state.used_codes)

    install_request_logging(app)
    app.add_exception_handler(XeroBrokerError, broker_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
    app.include_router(oauth_router, tags=["xero"])
    app.include_router(api_router, tags=["api"])

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"status": "ok", "service": "xero_broker", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "xero_broker.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
