"""
Hook Application
================
FastAPI app exposing the single ``POST /hook`` route.

Usage:
    from autoupdate_hook.app import create_app
    from autoupdate_hook.auth import StaticToken

    app = create_app(policy=StaticToken(expected="s3cret"))
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.requests import ClientDisconnect

from autoupdate_hook import __version__, metrics
from autoupdate_hook.auth import (
    AuthDecision,
    AuthPolicy,
    NoAuth,
    RequestAuthenticator,
    parse_credentials,
)
from autoupdate_hook.config import HookSettings
from autoupdate_hook.errors import InvocationError
from autoupdate_hook.logging import RequestLoggingMiddleware
from autoupdate_hook.rate_limit import (
    InMemoryRateLimiter,
    RateLimiter,
    RateLimitMiddleware,
    RedisRateLimiter,
)
from autoupdate_hook.update import UpdateInvoker

logger = structlog.get_logger(__name__)

HOOK_PATH = "/hook"


def create_limiter(settings: HookSettings) -> RateLimiter:
    """Redis-backed limiter when ``redis_url`` is set, in-memory otherwise."""
    if settings.redis_url:
        logger.info("rate_limiter_backend", backend="redis")
        return RedisRateLimiter.from_url(
            settings.redis_url,
            burst=settings.rate_limit_burst,
            period=settings.rate_limit_period,
        )
    return InMemoryRateLimiter(
        burst=settings.rate_limit_burst,
        period=settings.rate_limit_period,
    )


def create_invoker(settings: HookSettings) -> UpdateInvoker:
    return UpdateInvoker(
        command=settings.update_command,
        timeout=settings.update_timeout,
        dry_run=settings.dry_run,
    )


def _empty(status_code: int) -> Response:
    return Response(status_code=status_code)


def create_app(
    policy: Optional[AuthPolicy] = None,
    settings: Optional[HookSettings] = None,
    limiter: Optional[RateLimiter] = None,
    invoker: Optional[UpdateInvoker] = None,
) -> FastAPI:
    """
    Build the hook application.

    Args:
        policy: Active authorization policy, defaults to NoAuth
        settings: Runtime settings, defaults to HookSettings()
        limiter: Rate limiter, built from settings when omitted
        invoker: Update invoker, built from settings when omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or HookSettings()
    policy = policy if policy is not None else NoAuth()
    limiter = limiter if limiter is not None else create_limiter(settings)
    invoker = invoker if invoker is not None else create_invoker(settings)
    authenticator = RequestAuthenticator(policy)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("hook_started", policy=policy.mode, path=HOOK_PATH)
        yield
        logger.info("hook_shutting_down")
        close = getattr(limiter, "close", None)
        if close is not None:
            await close()

    app = FastAPI(
        title="podman-autoupdate-hook",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.policy = policy
    app.state.authenticator = authenticator
    app.state.invoker = invoker

    # Added last runs first: request id is bound before throttling
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(RequestLoggingMiddleware)

    @app.post(HOOK_PATH)
    async def hook(request: Request) -> Response:
        credentials = parse_credentials(request.headers)

        try:
            result = await authenticator.authenticate(credentials, request.stream())
        except ClientDisconnect:
            logger.info("client_disconnected_during_body_read")
            metrics.record_request("disconnected")
            return _empty(400)

        if result.decision == AuthDecision.BLOCK:
            metrics.record_request(result.outcome)
            return _empty(result.status_code)
        if result.decision == AuthDecision.IGNORE:
            metrics.record_request(result.outcome)
            return JSONResponse([])

        try:
            records = await invoker.invoke()
        except InvocationError as e:
            logger.error("update_failed", error=e.message, returncode=e.returncode)
            metrics.record_request("update_failed")
            return _empty(500)

        metrics.record_request(result.outcome)
        return JSONResponse([record.to_wire() for record in records])

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__, "auth": policy.mode}

    @app.get("/metrics")
    async def prometheus_metrics() -> Response:
        return Response(metrics.get_metrics_text(), media_type=metrics.CONTENT_TYPE_LATEST)

    return app
