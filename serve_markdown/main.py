from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from starlette.concurrency import run_in_threadpool
from structlog.contextvars import bind_contextvars, reset_contextvars

from serve_markdown.api.pages import router as pages_router
from serve_markdown.api.routes import router as admin_router
from serve_markdown.dependencies import (
    get_content_repository,
    get_database,
    get_markdown_pipeline,
    get_settings,
    get_telemetry,
)
from serve_markdown.logging_config import configure_application_logging
from serve_markdown.services.markdown_pipeline import MarkdownRequest

MARKDOWN_METHODS: frozenset[str] = frozenset({"GET", "HEAD"})


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    get_database()
    get_content_repository()
    yield


def _request_target(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


async def markdown_negotiation_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    if request.method not in MARKDOWN_METHODS:
        return await call_next(request)

    pipeline = get_markdown_pipeline()
    document = await run_in_threadpool(
        pipeline.handle,
        MarkdownRequest(
            path=_request_target(request),
            accept=request.headers.get("accept"),
            user_agent=request.headers.get("user-agent", ""),
            client_ip=request.client.host if request.client is not None else None,
        ),
    )
    if document is None:
        return await call_next(request)

    payload = document.body.encode("utf-8")
    headers = {**document.headers, "Content-Length": str(len(payload))}
    return Response(
        content=b"" if request.method == "HEAD" else payload,
        status_code=document.status_code,
        headers=headers,
    )


async def request_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    telemetry = get_telemetry()
    incoming_request_id = request.headers.get("X-Request-ID")
    request_id = (
        incoming_request_id.strip()
        if isinstance(incoming_request_id, str) and incoming_request_id.strip()
        else str(uuid4())
    )
    context_tokens = bind_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=request.url.path,
    )
    started_at = perf_counter()
    telemetry.emit(
        "http.request.start",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    try:
        response = await call_next(request)
    except Exception as exc:
        telemetry.emit(
            "http.request.error",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            duration_ms=int((perf_counter() - started_at) * 1000),
            error_type=type(exc).__name__,
        )
        raise
    else:
        response.headers["X-Request-ID"] = request_id
        telemetry.emit(
            "http.request.finish",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            duration_ms=int((perf_counter() - started_at) * 1000),
            status_code=response.status_code,
        )
        return response
    finally:
        reset_contextvars(**context_tokens)


def create_app() -> FastAPI:
    app = FastAPI(title="Serve Markdown", version="0.1.0", lifespan=app_lifespan)
    settings = get_settings()

    # Registered last runs first: request context wraps Markdown negotiation.
    app.middleware("http")(markdown_negotiation_middleware)
    app.middleware("http")(request_context_middleware)

    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    if settings.admin_enabled:
        app.include_router(admin_router)
    # Catch-all content pages go last so they never shadow other routes.
    app.include_router(pages_router)

    return app


app = create_app()
