"""ASGI entry point: `uvicorn app.main:app`."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import anonymous, health, migration, progress, rentals
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
logger = logging.getLogger(__name__)

_ROUTERS = (
    health.router,
    anonymous.router,
    rentals.router,
    progress.router,
    migration.router,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # Exit stack unwinds in reverse: redis closes before the db pool.
    async with AsyncExitStack() as stack:
        await stack.enter_async_context(lifespan_db())
        await stack.enter_async_context(lifespan_redis())
        logger.info(
            "rental-service ready  env=%s storage=%s cache=%s",
            SETTINGS.app_env,
            "postgres" if SETTINGS.database_url else "memory",
            "redis" if SETTINGS.redis_url else "memory",
        )
        yield


def create_app() -> FastAPI:
    application = FastAPI(
        title="rental-service",
        lifespan=lifespan,
        docs_url="/docs" if SETTINGS.is_dev else None,
        redoc_url="/redoc" if SETTINGS.is_dev else None,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Anonymous-Id", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    # Outermost last: RequestContext wraps Metrics wraps CORS.
    application.add_middleware(MetricsMiddleware)
    application.add_middleware(RequestContextMiddleware)
    for router in _ROUTERS:
        application.include_router(router)
    return application


app = create_app()
