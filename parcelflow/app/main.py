"""
ASGI entry point for the parcel delivery backend.

Run with ``uvicorn parcelflow.app.main:app``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from parcelflow.app.api.v1.router import router as api_v1_router
from parcelflow.app.core.config import settings
from parcelflow.app.core.exceptions import (
    AppException,
    app_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from parcelflow.app.core.observability import ObservabilityMiddleware, configure_logging
from parcelflow.app.core.redis_client import close_redis, get_redis, ping_redis
from parcelflow.app.db.session import Base, engine

# Registers every table on Base.metadata
from parcelflow.app.models import notification, parcel, payment, rider, tracking_event, user

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s started, serving /%s", settings.app_name, settings.api_version)
    try:
        yield
    finally:
        await close_redis()
        await engine.dispose()


async def health_check(redis=Depends(get_redis)):
    """Liveness plus report cache reachability; the API stays up without the cache."""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "cache": "up" if await ping_redis(redis) else "down",
    }


async def root():
    return {
        "message": "Parcel delivery server is running",
        "docs": "/docs",
        "health": "/health",
    }


def create_app() -> FastAPI:
    configure_logging(settings.log_level)

    application = FastAPI(
        title=settings.app_name,
        version=settings.api_version,
        debug=settings.debug,
        description="Parcel booking, rider dispatch, payments and tracking",
        lifespan=lifespan,
    )

    application.add_middleware(ObservabilityMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(AppException, app_exception_handler)
    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(Exception, generic_exception_handler)

    application.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    application.add_api_route("/", root, methods=["GET"], tags=["Root"])
    application.include_router(api_v1_router, prefix=f"/{settings.api_version}")
    return application


app = create_app()
