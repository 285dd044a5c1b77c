"""
Task Manager API - Main Application Entry Point

This module builds the FastAPI application: it constructs the rate limiter,
authenticator, task and user services once from settings, installs the gate
pipeline in front of the routers, and exposes `app` for the ASGI server.

    uvicorn src.main:app --port 8080
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from src.api.middleware.auth import Authenticator
from src.api.middleware.errors import register_exception_handlers
from src.api.middleware.pipeline import build_pipeline
from src.api.middleware.rate_limit import InMemoryRateLimiter
from src.api.routes.auth import router as auth_router
from src.api.routes.health import router as health_router
from src.api.routes.tasks import router as tasks_router
from src.core.config import Settings, get_settings
from src.core.security import BcryptPasswordHasher
from src.observability.logging import configure_logging, get_logger
from src.observability.metrics import generate_metrics
from src.services.email import EmailSender, LoggingEmailSender
from src.services.tasks import TaskService
from src.services.users import UserService

# Application metadata
APP_NAME = "Task Manager API"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Task management REST API with bearer-token authentication"

logger = get_logger("task_manager.main")


def get_cors_origins(settings: Settings) -> list[str]:
    """
    Get CORS allowed origins based on environment.

    - Development: allow all origins
    - Staging/Production: TASK_MANAGER_CORS_ORIGINS, empty by default
    """
    if settings.environment == "development":
        return ["*"]
    return settings.cors_origins


# =============================================================================
# Lifespan Context Manager
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup/shutdown."""
    settings: Settings = app.state.settings
    configure_logging(level=settings.log_level, force=True)
    logger.info(
        "service starting",
        service=settings.service_name,
        version=APP_VERSION,
        environment=settings.environment,
        rate_limit_capacity=settings.rate_limit_capacity,
        rate_limit_refill_rate=settings.rate_limit_refill_rate,
    )
    app.state.initialized = True

    yield

    app.state.initialized = False
    logger.info(
        "service stopped",
        tracked_clients=app.state.rate_limiter.tracked_clients,
    )


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    email_sender: Optional[EmailSender] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings override (defaults to the process singleton)
        email_sender: Outbound email sender (defaults to LoggingEmailSender)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    rate_limiter = InMemoryRateLimiter(
        capacity=settings.rate_limit_capacity,
        refill_rate=settings.rate_limit_refill_rate,
        limited_paths=settings.rate_limited_routes,
        idle_ttl=settings.rate_limit_idle_ttl_seconds,
    )
    authenticator = Authenticator(
        secret=settings.jwt_secret.get_secret_value(),
        public_paths=settings.public_routes,
        token_ttl=timedelta(seconds=settings.jwt_ttl_seconds),
    )

    docs_enabled = settings.environment != "production"
    app = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
        middleware=build_pipeline(
            rate_limiter,
            authenticator,
            trust_forwarded_for=settings.trust_forwarded_for,
        ),
    )

    app.state.settings = settings
    app.state.rate_limiter = rate_limiter
    app.state.authenticator = authenticator
    app.state.task_service = TaskService()
    app.state.user_service = UserService(
        authenticator,
        hasher=BcryptPasswordHasher(rounds=settings.password_hash_rounds),
        email_sender=email_sender or LoggingEmailSender(),
        base_url=settings.public_base_url,
        verification_ttl=timedelta(seconds=settings.verification_token_ttl_seconds),
        reset_ttl=timedelta(seconds=settings.password_reset_token_ttl_seconds),
    )
    app.state.initialized = False

    # Outermost, so preflight requests never hit the gates
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(tasks_router)

    @app.get("/metrics", response_class=PlainTextResponse, include_in_schema=False)
    async def metrics() -> str:
        return generate_metrics()

    return app


app = create_app()
