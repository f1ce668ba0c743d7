"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blindtest.api.errors import register_exception_handlers
from blindtest.api.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from blindtest.api.router import api_router
from blindtest.config import settings
from blindtest.database import close_db
from blindtest.logging import setup_logging

logger = logging.getLogger(__name__)

setup_logging()

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        # Bearer tokens and passwords travel in headers and bodies
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Schema is managed by Alembic migrations
    yield
    await close_db()


app = FastAPI(
    title="Blindtest Auth API",
    description="Email/password and passkey authentication with bearer sessions",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)

register_exception_handlers(app)

# Outermost first: the request ID must be set before requests are logged
app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    from blindtest.logging import get_uvicorn_log_config

    uvicorn.run(
        "blindtest.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
