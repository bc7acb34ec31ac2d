"""
Job Board Accounts Service - Main Application

FastAPI backend with:
- MongoDB for accounts and profiles
- Local disk storage for registration uploads
- JWT access/refresh tokens
- Federated (ID token) sign-up

Run: uvicorn app.main:app --reload
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.errors import setup_exception_handlers
from app.core.logging import LoggingMiddleware, configure_logging
from app.db.mongodb import init_mongo_indexes, test_mongo_connection

logger = structlog.get_logger()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Job Board Accounts",
        description="""
    Account provisioning for the job board.

    ## Features
    - **Registration**: account + candidate/employer profile in one call,
      rolled back together if the profile cannot be saved
    - **Uploads**: resume, photo, cover letter, certificates, company logo
    - **Sessions**: JWT access token (24h) and refresh token (30d)
    - **Federated sign-up**: identity provider ID token instead of a password
    """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    setup_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    @app.on_event("startup")
    async def startup_event():
        """Create MongoDB indexes on startup."""
        try:
            init_mongo_indexes()
        except Exception as e:
            logger.error("MongoDB index initialization failed", error=str(e))

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Detailed health check."""
        return {
            "status": "healthy",
            "mongodb": "connected" if test_mongo_connection() else "disconnected",
        }

    return app


app = create_app()
