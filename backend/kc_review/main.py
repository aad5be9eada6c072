"""ASGI entry point for the kc-review service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from kc_review.api.router import api_router
from kc_review.config import settings
from kc_review.database import engine
from kc_review.middleware.logging import RequestLoggingMiddleware

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)

logger = logging.getLogger("kc_review")


def _init_error_reporting() -> None:
    """Hook Sentry up when a DSN is configured; the service runs fine without it."""
    if not settings.sentry_dsn:
        return
    try:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
        )
    except Exception as e:
        logger.warning("Sentry disabled, init failed: %s", e)
    else:
        logger.info("Sentry reporting enabled for %s", settings.environment)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _init_error_reporting()
    logger.info("kc-review up (env=%s, db_echo=%s)", settings.environment, settings.database_echo)
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("kc-review stopped, connection pool disposed")


app = FastAPI(
    title="kc-review - Crop Coefficient Review",
    description="Review workflow for submitted crop-coefficient proposals with an append-only audit trail",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(RequestLoggingMiddleware)
app.include_router(api_router, prefix="/api")
