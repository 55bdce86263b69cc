"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.infrastructure.db import engine, SessionLocal
from shared.config.settings import settings
from shared.config.logging import setup_logging, storefront_logger as logger
from shared.infrastructure.events import close_redis_pool
from storefront_api.models import Base
from storefront_api.seed import seed
from storefront_api.services.events import start_outbox_processor, stop_outbox_processor


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    setup_logging()

    # Refuse to start in production with insecure configuration
    secret_errors = settings.validate_production_secrets()
    if secret_errors:
        for error in secret_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(secret_errors)}. "
                "Server will not start with insecure configuration."
            )
        else:
            logger.warning(
                "Running with insecure defaults (acceptable for development only)"
            )

    logger.info("Starting storefront API", port=settings.api_port, env=settings.environment)

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    with SessionLocal() as db:
        seed(db)

    if settings.events_enabled:
        await start_outbox_processor()
        logger.info("Outbox processor started")

    yield

    logger.info("Shutting down storefront API")

    if settings.events_enabled:
        await stop_outbox_processor()
        logger.info("Outbox processor stopped")

    await close_redis_pool()
    logger.info("Redis connection pool closed")
