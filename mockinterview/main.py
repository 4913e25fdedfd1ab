import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mockinterview.core.config import settings
from mockinterview.core.context import AppContext
from mockinterview.core.error_handler import app_error_handler
from mockinterview.core.exceptions import AppError
from mockinterview.core.logging_config import setup_logging
from mockinterview.db.database import Base, SessionLocal, engine
from mockinterview.models import models  # noqa: F401  registers the tables with Base
from mockinterview.routers import config, elevenlabs, gemini, health, interview, sessions, users

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    load_dotenv()
    setup_logging()

    app = FastAPI(title="Mock Interview Backend", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, app_error_handler)

    app.state.context = AppContext(settings, SessionLocal)

    @app.on_event("startup")
    async def startup_event():
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")

    @app.on_event("shutdown")
    async def shutdown_event():
        for session_id in list(app.state.context.flows.session_ids()):
            app.state.context.flows.discard(session_id)
        logger.info("Interview flows cancelled")

    app.include_router(config.router)
    app.include_router(gemini.router)
    app.include_router(elevenlabs.router)
    app.include_router(sessions.router)
    app.include_router(users.router)
    app.include_router(interview.router)
    app.include_router(health.router)

    return app


app = create_app()
