"""API middleware for CORS"""
import logging
from fastapi.middleware.cors import CORSMiddleware

from studyhub.config import CORS_ORIGINS

logger = logging.getLogger(__name__)


def setup_cors(app, origins=None):
    """Configure CORS middleware"""
    cors_origins = origins if origins is not None else CORS_ORIGINS

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(f"CORS configured for origins: {cors_origins}")
