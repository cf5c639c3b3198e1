"""Aurum Vault Operations Service.

Back-office bulk entity actions and customer bill payments with
threshold-gated document verification. Uses PostgreSQL with the aurum schema.
"""

import logging
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from app.api.routes import api_router
from app.core.config import AppEnvironment, Settings, get_settings
from app.core.database import reset_engine
from app.core.errors import BankingOperationsError, get_status_code
from app.core.http_client import close_async_http_client
from app.core.logging import setup_logging, start_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    settings = get_settings()
    setup_logging(settings)
    app.state.settings = settings
    logger.info(
        "Service starting (app=%s env=%s version=%s)",
        settings.app.name,
        settings.app.env.value,
        settings.app.version,
    )

    try:
        yield
    finally:
        await close_async_http_client()
        await reset_engine()
        logger.info("Service stopped")


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Tag log lines with the caller's request ID (or a fresh one) and echo it back."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    start_request_context(request_id)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def handle_domain_error(request: Request, exc: BankingOperationsError) -> JSONResponse:
    body: dict[str, object] = {"detail": exc.message}
    if exc.details:
        body["errors"] = exc.details
    return JSONResponse(status_code=get_status_code(exc), content=body)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception on %s %s",
        request.method,
        request.url.path,
        extra={"error": str(exc)},
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    settings = get_settings()
    expose_docs = settings.app.env != AppEnvironment.PROD

    app = FastAPI(
        title="Aurum Vault Operations API",
        description=(
            "Bulk actions on users, accounts, transactions, wire transfers and cards, "
            "and customer bill payments with document verification above a threshold."
        ),
        version=settings.app.version,
        lifespan=lifespan,
        docs_url="/docs" if expose_docs else None,
        redoc_url="/redoc" if expose_docs else None,
        openapi_url="/openapi.json" if expose_docs else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=settings.security.cors_allow_methods,
        allow_headers=settings.security.cors_allow_headers,
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.middleware("http")(request_context_middleware)

    app.add_exception_handler(BankingOperationsError, handle_domain_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(api_router, prefix=f"/api{settings.app.api_prefix}")
    setup_telemetry(app, settings)
    return app


def setup_telemetry(app: FastAPI, settings: Settings) -> None:
    """Export FastAPI spans over OTLP when an endpoint is configured."""
    observability = settings.observability
    if not observability.otlp_endpoint:
        return

    provider = TracerProvider(
        resource=Resource(attributes={SERVICE_NAME: observability.service_name})
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(
                endpoint=observability.otlp_endpoint,
                insecure=observability.otlp_insecure,
            )
        )
    )
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)


def run() -> None:
    import uvicorn

    settings = get_settings()
    local = settings.app.env == AppEnvironment.LOCAL

    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=local,
        workers=1 if local else settings.server.workers,
        log_level=settings.app.log_level.value.lower(),
    )


if __name__ == "__main__":
    run()
