"""
FastAPI application entry point for the Dish Palate backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dishpalate.config import DEV_TOKEN_SECRET, get_settings
from dishpalate.dependencies import close_db_client, get_db_client
from dishpalate.errors import install_error_handlers
from dishpalate.routes import router
from dishpalate.schemas import LivenessResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Open the store once per process and share it across requests.
    provider = app.dependency_overrides.get(get_db_client, get_db_client)
    db = provider()
    db.ping()
    logger.info("Store ready: %s", db.__class__.__name__)
    if get_settings().access_token_secret == DEV_TOKEN_SECRET:
        logger.warning("ACCESS_TOKEN_SECRET not set; using the development secret")
    yield
    if provider is get_db_client:
        close_db_client()
    else:
        db.close()
    logger.info("Store closed: %s", db.__class__.__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Dish Palate Backend", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/", response_model=LivenessResponse)
    def liveness():
        return LivenessResponse(
            message="Server is running", timestamp=datetime.now(timezone.utc)
        )

    return app


app = create_app()
