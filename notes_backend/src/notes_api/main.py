from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notes_api.auth import PasswordHasher, TokenIssuer, seed_demo_user
from notes_api.config import Settings, get_settings
from notes_api.database import Database
from notes_api.errors import register_exception_handlers
from notes_api.logging_config import configure_logging
from notes_api.middleware import setup_middleware
from notes_api.models import utcnow
from notes_api.routes import auth_router, notes_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and optionally seed a demo user on startup; release the pool on shutdown."""
    settings: Settings = app.state.settings
    database: Database = app.state.database
    logger.info("Starting notes API", env=settings.ENVIRONMENT)

    database.create_all()
    if settings.SEED_DEMO_USER:
        db = database.session()
        try:
            seed_demo_user(db, app.state.password_hasher)
        finally:
            db.close()

    yield

    database.dispose()
    logger.info("Notes API stopped")


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the notes application.

    Settings are read from the environment when not given; a missing
    JWT_SECRET or DATABASE_URL fails here, before any request is served.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Notes API",
        description="Personal notes backend with cookie sessions and owner-scoped CRUD.",
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Health", "description": "Service health and status."},
            {"name": "Auth", "description": "Registration, login and cookie sessions."},
            {"name": "Notes", "description": "Owner-scoped CRUD and search for notes."},
        ],
    )

    app.state.settings = settings
    app.state.database = database or Database(settings.DATABASE_URL, timeout_seconds=settings.DB_TIMEOUT_SECONDS)
    app.state.password_hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    app.state.token_issuer = TokenIssuer(
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        ttl=timedelta(days=settings.SESSION_TTL_DAYS),
    )
    app.state.clock = utcnow

    setup_middleware(app)
    register_exception_handlers(app)

    # CORS - allow the frontend to send the session cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # PUBLIC_INTERFACE
    @app.get("/", tags=["Health"], summary="Health Check")
    def health_check():
        """
        Health check endpoint.

        Returns:
            JSON object indicating service status.
        """
        return {"message": "Healthy"}

    app.include_router(auth_router)
    app.include_router(notes_router)
    return app
