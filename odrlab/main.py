"""
ODR Lab — FastAPI application entry-point.

Run with:
    uvicorn odrlab.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from odrlab import __version__
from odrlab.config import Settings, settings as default_settings
from odrlab.database import Database
from odrlab.errors import register_error_handlers
from odrlab.logging_config import init_logging
from odrlab.services.profiles import ensure_admin

# ── Import routers ──
from odrlab.routers import admin, auth, collaboration, discussion, ideas, mentors, users

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    init_logging(settings)

    # ── Lifespan: connect the database and bootstrap the admin ──
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
        await database.connect()
        app.state.database = database
        await ensure_admin(database, settings)
        logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
        try:
            yield
        finally:
            await database.disconnect()
            logger.info(f"{settings.APP_NAME} stopped")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Online dispute resolution lab — profiles, idea review and collaboration.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    # ── Register API routers ──
    for module in (auth, users, ideas, admin, collaboration, discussion, mentors):
        app.include_router(module.router, prefix="/api")

    @app.get("/")
    async def health():
        return {"status": "ok", "name": settings.APP_NAME, "version": __version__}

    return app


app = create_app()
