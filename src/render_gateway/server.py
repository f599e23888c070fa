"""HTTP entry point.

Routes:
  GET  /health   liveness check, also the keep-alive target
  POST /fetch    {"url": "...", "format": "json" | other} -> rendered page

Run with ``python -m render_gateway.server`` or the ``render-gateway`` script.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import time
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from render_gateway.cache import RenderCache
from render_gateway.config import Settings
from render_gateway.errors import ErrorCode, GatewayError, PayloadTooLargeError
from render_gateway.gateway import build_gateway
from render_gateway.keepalive import resolve_ping_url, run_keepalive
from render_gateway.models.fetch import FetchOutput
from render_gateway.models.requests import parse_fetch_body
from render_gateway.state import AppState
from render_gateway.upstream import build_http_client

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from render_gateway.config import LoggingSettings

log = structlog.get_logger()


def setup_logging(settings: LoggingSettings) -> None:
    """Configure structlog to write one event per line to stderr."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, settings.level)),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "").strip()
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def _read_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(limit)
    return bytes(body)


def _app_state(request: Request) -> AppState:
    return request.app.state.app_state


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Tests inject a ready AppState
    if getattr(app.state, "app_state", None) is not None:
        yield
        return

    settings: Settings = app.state.settings
    if not settings.upstream.token:
        log.warning("upstream_token_missing", hint="fetch requests will fail until it is set")

    async with build_http_client(settings.upstream) as client:
        cache = RenderCache(settings.cache.ttl_seconds, settings.cache.max_entries)
        state = AppState(
            settings=settings,
            http_client=client,
            cache=cache,
            gateway=build_gateway(settings, client, cache),
        )
        if settings.keepalive.enabled and settings.keepalive.interval_seconds > 0:
            ping_url = resolve_ping_url(settings)
            state.keepalive_task = asyncio.create_task(
                run_keepalive(client, ping_url, settings.keepalive.interval_seconds)
            )
        app.state.app_state = state
        log.info(
            "gateway_started",
            cache_ttl_seconds=settings.cache.ttl_seconds,
            cache_max_entries=settings.cache.max_entries,
        )
        try:
            yield
        finally:
            if state.keepalive_task is not None:
                state.keepalive_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await state.keepalive_task
            app.state.app_state = None


def create_app(settings: Settings | None = None, state: AppState | None = None) -> FastAPI:
    if settings is None:
        settings = state.settings if state is not None else Settings()

    app = FastAPI(title="render-gateway", lifespan=lifespan, docs_url=None, redoc_url=None)
    app.state.settings = settings
    app.state.app_state = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _request_logging(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start = time.perf_counter()
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=uuid.uuid4().hex)
        log.info(
            "request_received",
            method=request.method,
            path=request.url.path,
            client_ip=_client_ip(request),
            user_agent=request.headers.get("user-agent", "unknown"),
            content_type=request.headers.get("content-type", "unknown"),
            content_length=request.headers.get("content-length", "unknown"),
        )
        response = await call_next(request)
        log.info(
            "request_completed",
            status=response.status_code,
            latency_ms=int((time.perf_counter() - start) * 1000),
        )
        return response

    @app.exception_handler(GatewayError)
    async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        log.error("request_failed", code=exc.code, error=exc.message, status=exc.status_code)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            error = GatewayError(ErrorCode.NOT_FOUND, "Not found.", status_code=404)
        else:
            code = ErrorCode.INVALID_INPUT if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR
            error = GatewayError(code, str(exc.detail), status_code=exc.status_code)
        return JSONResponse(error.to_dict(), status_code=error.status_code)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        state = _app_state(request)
        return {"ok": True, "cache_entries": len(state.cache)}

    @app.post("/fetch")
    async def fetch(request: Request) -> Response:
        state = _app_state(request)
        raw = await _read_body(request, state.settings.server.max_body_bytes)
        params = parse_fetch_body(raw, default_format=request.query_params.get("format"))

        log.info("fetch_started", url=params.url, format=params.format)
        try:
            output = await state.gateway.fetch(params.url, params.format)
        except GatewayError:
            raise
        except Exception as exc:
            log.error("fetch_unexpected_error", url=params.url, exc_info=True)
            raise GatewayError(
                ErrorCode.INTERNAL_ERROR, str(exc) or "Internal server error."
            ) from exc

        if isinstance(output, FetchOutput):
            return JSONResponse(output.model_dump())
        return Response(content=output.html, media_type=output.content_type)

    return app


def main() -> None:
    settings = Settings()
    setup_logging(settings.logging)
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.logging.level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
