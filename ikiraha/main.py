"""FastAPI application initialization."""

import asyncio
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ikiraha.api.admin import router as admin_router
from ikiraha.api.auth import router as auth_router
from ikiraha.api.error_handling import register_exception_handlers
from ikiraha.api.middleware import CorrelationIdMiddleware
from ikiraha.api.routes import router
from ikiraha.config import Settings, get_settings
from ikiraha.database import close_pool, create_pool, run_migrations
from ikiraha.services.logging_service import configure_logging, get_logger
from ikiraha.services.password_service import PasswordService
from ikiraha.services.refresh_token_service import RefreshTokenService
from ikiraha.services.token_service import TokenService


async def sweep_refresh_tokens_periodically(
    ledger: RefreshTokenService, interval_seconds: int
) -> None:
    """Delete expired ledger rows every ``interval_seconds`` until cancelled."""
    logger = get_logger("refresh_token_sweeper")
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            await ledger.sweep_expired()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning("refresh_token_sweep_error", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    logger = get_logger("main")

    app.state.passwords = PasswordService(settings)

    pool = await create_pool(settings)
    app.state.pool = pool
    if settings.run_migrations_on_startup:
        await run_migrations(pool)
    logger.info("database_initialized")

    sweeper = None
    if settings.refresh_token_sweep_interval_seconds > 0:
        ledger = RefreshTokenService(pool, TokenService(settings), settings)
        sweeper = asyncio.create_task(
            sweep_refresh_tokens_periodically(
                ledger, settings.refresh_token_sweep_interval_seconds
            )
        )
        logger.info(
            "refresh_token_sweeper_started",
            interval_seconds=settings.refresh_token_sweep_interval_seconds,
        )

    logger.info(
        "application_started",
        environment=settings.environment,
        log_level=settings.log_level,
    )

    yield

    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        logger.info("refresh_token_sweeper_stopped")

    await close_pool(app.state.pool)
    app.state.pool = None
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use; defaults to the cached environment settings
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Ikiraha API",
        description="Accounts, sessions and password management for the Ikiraha food-ordering platform",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pool = None

    register_exception_handlers(app, settings)

    # CORS middleware for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Correlation-Id"],
    )

    # Correlation ID middleware for request tracking and observability
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(router)

    return app


app = create_app()
