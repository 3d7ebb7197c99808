"""
Main Application - FastAPI application setup.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from backoffice.api.auth_routes import router as auth_router
from backoffice.api.blog_routes import router as blog_router
from backoffice.api.errors import register_exception_handlers
from backoffice.api.file_routes import router as file_router
from backoffice.api.form_routes import router as form_router
from backoffice.api.project_routes import router as project_router
from backoffice.api.report_routes import router as report_router
from backoffice.api.status_routes import router as status_router
from backoffice.api.support_routes import router as support_router
from backoffice.api.user_routes import clients_router
from backoffice.api.user_routes import router as user_router
from backoffice.clients import build_clients, get_clients, init_clients, reset_clients
from backoffice.config import settings
from backoffice.db.migration_runner import run_migrations
from backoffice.db.session import close_engines
from backoffice.observability import get_logger, log_context, metrics, setup_logging, setup_tracing
from backoffice.observability.tracing import instrument_fastapi

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Startup: migrations, then the shared service clients.
    Shutdown: clients, then database engines.
    """
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    if settings.run_migrations_on_startup:
        await asyncio.to_thread(run_migrations)

    init_clients(build_clients(settings))

    yield

    logger.info("application_shutting_down")
    await get_clients().aclose()
    reset_clients()
    await close_engines()
    logger.info("database_engines_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)

register_exception_handlers(app)

# Setup tracing
setup_tracing()
instrument_fastapi(app)


# Proxy headers middleware - trust X-Forwarded-* headers from the reverse proxy
class ProxyHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to handle X-Forwarded-* headers from reverse proxy."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        forwarded_proto = request.headers.get("X-Forwarded-Proto")
        if forwarded_proto:
            request.scope["scheme"] = forwarded_proto

        return await call_next(request)


app.add_middleware(ProxyHeadersMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Log all HTTP requests with timing."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID") or uuid4().hex

    endpoint = request.url.path
    method = request.method
    metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()

    with log_context(request_id=request_id):
        logger.info("request_started", method=method, path=endpoint)
        try:
            response = await call_next(request)
            duration = time.time() - start_time

            metrics.record_http_request(endpoint, method, response.status_code, duration)
            logger.info(
                "request_completed",
                method=method,
                path=endpoint,
                status_code=response.status_code,
                duration_seconds=duration,
            )

            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            duration = time.time() - start_time
            metrics.record_http_request(endpoint, method, 500, duration)
            metrics.record_error(type(e).__name__, "http_request")

            logger.error(
                "request_failed",
                method=method,
                path=endpoint,
                error=str(e),
                duration_seconds=duration,
                exc_info=True,
            )
            raise
        finally:
            metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()


# Register routes
app.include_router(status_router)
app.include_router(auth_router)
app.include_router(file_router)
app.include_router(report_router)
app.include_router(support_router)
app.include_router(project_router)
app.include_router(user_router)
app.include_router(clients_router)
app.include_router(blog_router)
app.include_router(form_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return PlainTextResponse(generate_latest())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backoffice.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
