"""
pinauth FastAPI application.

Wires the /v1 auth router, the JSON error handlers and the shared
resources (database pool, email sender) created at startup.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from pinauth.adapters.repository.postgres import run_migrations
from pinauth.api.dependencies import build_email_sender
from pinauth.api.errors import register_exception_handlers
from pinauth.api.v1 import router as v1_router
from pinauth.config.settings import get_settings

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

tags_metadata = [
    {
        "name": "auth",
        "description": "Email + PIN login and OTP-verified registration",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Open the pool, apply migrations and pick the email backend.

    Everything is attached to app.state; the pool is closed on shutdown.
    """
    settings = get_settings()

    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        open=True,
    )
    logger.info(
        "Database pool open (min=%s, max=%s)", settings.pool_min_size, settings.pool_max_size
    )

    run_migrations(pool)

    app.state.pool = pool
    app.state.email_sender = build_email_sender(settings)
    logger.info("pinauth ready, email backend=%s", settings.email_backend)

    try:
        yield
    finally:
        pool.close()
        logger.info("Database pool closed")


app = FastAPI(
    title="pinauth",
    description="Email + PIN authentication with OTP-verified registration",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)
register_exception_handlers(app)
app.include_router(v1_router, prefix="/v1")


@app.get("/health", include_in_schema=False)
async def health_check(request: Request) -> dict[str, str]:
    """Report healthy once the database answers a trivial query."""
    with request.app.state.pool.connection() as conn:
        conn.execute("SELECT 1")
    return {"status": "healthy"}
