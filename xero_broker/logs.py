"""
Logging setup, per-request ids and process-level fault hooks.
"""
import logging
import sys
import time
import uuid

from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a consistent format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "unknown"


def install_request_logging(app: FastAPI) -> None:
    """Tag every request with an id (honouring an incoming X-Request-ID) and log method, path, status, duration."""

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        request.state.request_id = request_id
        started = time.monotonic()
        logger.info("[%s] %s %s", request_id, request.method, request.url.path)
        response = await call_next(request)
        elapsed_ms = (time.monotonic() - started) * 1000
        log = logger.warning if response.status_code >= 400 else logger.info
        log("[%s] %s %s -> %s (%.0f ms)", request_id, request.method, request.url.path, response.status_code, elapsed_ms)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _log_uncaught(exc_type, exc, tb) -> None:
    # Unknown synchronous faults are not safe to continue from; the interpreter exits after this hook
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    logger.critical("Uncaught exception, process will exit", exc_info=(exc_type, exc, tb))


def log_async_exception(loop, context: dict) -> None:
    """asyncio loop exception handler: background-task faults are logged and the process keeps running."""
    exc = context.get("exception")
    logger.error(
        "Unhandled exception in background task: %s",
        context.get("message"),
        exc_info=(type(exc), exc, exc.__traceback__) if exc else None,
    )


def install_fault_hooks() -> None:
    sys.excepthook = _log_uncaught
