# main.py
# Entry point for the backend service.
# - Loads settings and configures logging
# - Registers API routes (github, openai, llm, agents, brags, projects, resume, snapshots)
# - Provides root health-check endpoints
# - Run with: uvicorn main:app --reload (from backend/src)
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.agents_routes import router as agents_router
from api.github_routes import router as github_router
from api.llm_routes import key_router as openai_router
from api.llm_routes import router as llm_router
from api.projects_routes import router as projects_router
from api.resume_routes import router as resume_router
from api.review_item_routes import achievements_router, brags_router
from api.snapshots_routes import router as snapshots_router
from api.dependencies import app_error_handler
from config.settings import Settings, get_settings
from core.errors import AppError
from services.rate_limit import RateLimiters

logger = logging.getLogger(__name__)

ROUTERS = (
    github_router,
    openai_router,
    llm_router,
    agents_router,
    brags_router,
    achievements_router,
    projects_router,
    resume_router,
    snapshots_router,
)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Fails fast when the encryption key is missing."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Brag List Backend API",
        description="Turns GitHub activity into resume-ready achievements",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.rate_limiters = RateLimiters.create(
        api_per_minute=settings.api_rate_limit_per_minute,
        analysis_per_minute=settings.analysis_rate_limit_per_minute,
    )
    app.add_exception_handler(AppError, app_error_handler)

    @app.get("/")
    def root():
        return {"status": "healthy", "message": "Backend API is running"}

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    # Register API routes
    for router in ROUTERS:
        app.include_router(router)

    logger.info("Application started with %d routers", len(ROUTERS))
    return app


app = create_app()
