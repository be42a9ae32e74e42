from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Form, HTTPException, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from one_time_share.app.compose import AppContainer, compose
from one_time_share.core.domain.limits import (
    check_creation_rate,
    check_message_size,
    expire_timestamp_for,
    parse_retention,
    resolve_retention,
)
from one_time_share.core.infrastructure.settings import Settings
from one_time_share.utils import metrics as M
from one_time_share.utils.exceptions import DuplicateTokenError, MessageRejected
from one_time_share.utils.logging import get_logger, set_request_id, short_token

logger = get_logger(__name__)

# Same body for missing and expired messages: the response must not tell them apart.
_NOT_FOUND_BODY = {"status": "not-found"}


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def create_app(
    container: Optional[AppContainer] = None,
    *,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI app. Without ``container`` the lifespan composes one from
    ``settings`` (or the process settings) on startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        c = container or compose(settings)
        app.state.container = c
        await c.start()
        logger.info("server_started")
        try:
            yield
        finally:
            await c.stop()
            logger.info("server_stopped")

    app = FastAPI(title="one-time-share", lifespan=lifespan)

    if container is not None:
        # usable without running the lifespan (tests)
        app.state.container = container

    # ---------------- errors as plain text ----------------

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    # ---------------- request id + latency ----------------

    @app.middleware("http")
    async def _request_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        set_request_id(request_id)
        t0 = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            route = request.scope.get("route")
            path_template = getattr(route, "path", "unmatched")
            M.observe(
                "http_request_latency_seconds",
                (time.perf_counter() - t0) * 1000.0,
                path=path_template,
                method=request.method,
            )
            set_request_id(None)
        response.headers["X-Request-ID"] = request_id
        return response

    # ---------------- pages ----------------

    @app.get("/", response_class=HTMLResponse)
    def home_page(request: Request) -> str:
        return _container(request).pages.index_html

    @app.get("/shared/")
    def shared_page_without_token() -> None:
        raise HTTPException(status_code=400, detail="Token is empty")

    @app.get("/shared/{message_token}", response_class=HTMLResponse)
    def shared_page(request: Request, message_token: str) -> str:
        return _container(request).pages.render_shared(message_token)

    @app.get("/limits")
    def get_limits(request: Request) -> dict[str, int]:
        limits = _container(request).default_limits
        return {
            "messageLimitBytes": limits.max_size_bytes,
            "retentionLimitMinutes": limits.retention_limit_minutes,
        }

    # ---------------- messages ----------------

    @app.post("/save", response_class=PlainTextResponse)
    def save_message(
        request: Request,
        user_token: str = Form(""),
        message_data: str = Form(""),
        retention: str = Form(""),
    ) -> str:
        c = _container(request)
        storage = c.storage

        if not user_token:
            raise HTTPException(status_code=400, detail="user_token is empty")

        limits = storage.get_limits(user_token)
        if not limits.found:
            raise HTTPException(status_code=404, detail="User not found")

        now_ts = c.clock()
        try:
            check_creation_rate(limits, storage.get_last_creation_timestamp(user_token), now_ts)
            check_message_size(limits, message_data)
            retention_minutes = resolve_retention(limits, parse_retention(retention))
        except MessageRejected as exc:
            M.inc("messages_rejected_total", reason=exc.reason)
            logger.info("message_rejected", extra={"reason": exc.reason, "identity": short_token(user_token)})
            raise HTTPException(status_code=400, detail=exc.detail) from None

        storage.record_creation_timestamp(user_token, now_ts)

        message_token = str(uuid.uuid4())
        try:
            storage.save_message(message_token, expire_timestamp_for(retention_minutes, now_ts), message_data)
        except DuplicateTokenError:
            logger.error("message_token_collision", extra={"message_token": short_token(message_token)})
            raise HTTPException(status_code=500, detail="Can't save message. Try again") from None

        # the link has to travel encrypted, so it is always https
        return f"https://{request.url.netloc}/shared/{message_token}"

    @app.post("/consume")
    def consume_message(request: Request, message_token: str = Form("")) -> dict[str, Any]:
        c = _container(request)
        if not message_token:
            raise HTTPException(status_code=400, detail="message_token is empty")

        result = c.storage.consume_message(message_token)
        if result.is_live(c.clock()):
            M.inc("messages_consumed_total", outcome="ok")
            return {"status": "ok", "message": result.data}

        M.inc("messages_consumed_total", outcome="expired" if result.found else "not_found")
        return _NOT_FOUND_BODY

    # ---------------- service ----------------

    @app.get("/health")
    def health(request: Request) -> JSONResponse:
        c = _container(request)
        db_open = c.storage.is_open()
        body: dict[str, Any] = {
            "ok": db_open,
            "db_open": db_open,
            "janitor_running": c.janitor.is_running(),
        }
        if db_open:
            body["version"] = c.storage.get_version()
            body["last_purge_timestamp"] = c.storage.last_purge_timestamp()
        return JSONResponse(body, status_code=200 if db_open else 503)

    @app.get("/metrics", response_class=PlainTextResponse)
    def metrics_endpoint() -> Response:
        return PlainTextResponse(M.export_text(), media_type="text/plain; version=0.0.4")

    return app
