"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from studyhub.api.middleware import setup_cors
from studyhub.api.routes import router
from studyhub.config import STORE_BACKEND
from studyhub.db.connection import db
from studyhub.exceptions import StudyHubError
from studyhub.services.container import build_backends, init_container

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info(f"Starting API server (store backend: {STORE_BACKEND})...")
    if STORE_BACKEND == "postgres":
        await db.init_pool()
        logger.info("Database pool initialized")

    store, activity = build_backends(STORE_BACKEND)
    init_container(store, activity)

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    if STORE_BACKEND == "postgres":
        await db.close_pool()
        logger.info("Database pool closed")


def create_api_application() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="StudyHub Gamification API",
        description="Achievements, group challenges and leaderboards",
        version="1.0.0",
        lifespan=lifespan
    )

    # Setup middleware
    setup_cors(app)

    # Include routes
    app.include_router(router)

    @app.exception_handler(StudyHubError)
    async def studyhub_exception_handler(request: Request, exc: StudyHubError):
        # Already logged when raised
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": str(exc)}
        )

    logger.info("FastAPI application created")

    return app
