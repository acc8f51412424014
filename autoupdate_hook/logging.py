"""
Hook Logging
============
Structured logging setup and request logging middleware.

Usage:
    from autoupdate_hook.logging import setup_logging, RequestLoggingMiddleware

    setup_logging(level="INFO", json_output=True)
    app.add_middleware(RequestLoggingMiddleware)
"""

import logging
import sys
import time
import uuid

import structlog

REQUEST_ID_HEADER = "x-request-id"


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines (production) instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # uvicorn and other stdlib loggers share the same stream and level
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    ))
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )

    structlog.get_logger(__name__).info("logging_configured", level=level.upper())


class RequestLoggingMiddleware:
    """
    ASGI middleware that tags every log line of a request with a request id.

    Reuses an incoming ``X-Request-ID`` when present and echoes the id back.
    """

    def __init__(self, app):
        self.app = app
        self.logger = structlog.get_logger("http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(REQUEST_ID_HEADER.encode(), b"").decode("latin-1")[:64]
        if not request_id:
            request_id = str(uuid.uuid4())[:8]

        method = scope.get("method", "")
        path = scope.get("path", "")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.time()
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                raw = list(message.get("headers", []))
                raw.append((REQUEST_ID_HEADER.encode(), request_id.encode("latin-1")))
                message = {**message, "headers": raw}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            self.logger.exception("request_failed", method=method, path=path)
            raise
        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            if status_code < 400:
                log = self.logger.info
            elif status_code < 500:
                log = self.logger.warning
            else:
                log = self.logger.error
            log(
                "request_completed",
                method=method,
                path=path,
                status=status_code,
                duration_ms=duration_ms,
            )
            structlog.contextvars.clear_contextvars()
