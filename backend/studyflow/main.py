"""
Application factory.

    uvicorn --factory studyflow.main:create_app

Everything the request handlers need (settings, database, token issuer) is
built here and hung on ``app.state``; the lifespan disposes the engine.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studyflow.config import Settings, load_settings
from studyflow.database import Database
from studyflow.routers import admin, auth, notes, participant, projects
from studyflow.services.auth_service import TokenIssuer

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or load_settings()
    database = database or Database.from_settings(settings)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("studyflow starting")
        yield
        await database.dispose()
        logger.info("studyflow stopped")

    app = FastAPI(title="Studyflow API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.token_issuer = TokenIssuer(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(projects.router)
    app.include_router(participant.router)
    app.include_router(admin.router)
    app.include_router(notes.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
