"""FastAPI application factory and startup hooks."""

import logging

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ratemyeagle.config import get_settings
from ratemyeagle.database import init_db
from ratemyeagle.errors import register_exception_handlers
from ratemyeagle.forum import router as forum_router
from ratemyeagle.routes import router
from ratemyeagle.tracing import setup_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run startup tasks before the app begins serving requests."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    # 1. Initialise database tables
    logger.info("Initialising database …")
    try:
        init_db()
    except Exception as exc:
        logger.warning("Database init deferred, POST /setup to retry: %s", exc)

    # 2. Set up OpenTelemetry tracing
    logger.info("Configuring tracing …")
    try:
        fastapi_instrumentor = setup_tracing()
        fastapi_instrumentor.instrument_app(app)
    except Exception as exc:
        logger.warning("Tracing setup deferred: %s", exc)

    logger.info("RateMyEagle API ready")
    yield
    logger.info("RateMyEagle API shutdown complete")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="RateMyEagle API",
        description="Professor ratings and a student forum for UNT students",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS – the single-page front end is served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["Content-Length"],
        max_age=600,
    )

    register_exception_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(forum_router, prefix=settings.api_prefix)

    return app


app = create_app()
