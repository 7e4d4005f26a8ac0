"""Plotdesk Backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from plotdesk.api import api_router
from plotdesk.api.auth import router as auth_router
from plotdesk.api.health import router as health_router
from plotdesk.core import async_session_maker, engine, settings, setup_logging
from plotdesk.core.logging import get_logger

# Import all models to ensure they're registered with Base for Alembic
from plotdesk.models import Account, PasswordReset, RefreshToken, TokenRevocation  # noqa: F401
from plotdesk.services.mailer import LogMailer, Mailer, SmtpMailer
from plotdesk.services.password_reset import purge_expired_password_resets
from plotdesk.services.refresh import purge_expired_refresh_tokens
from plotdesk.services.revocation import (
    DatabaseRevocationStore,
    MemoryRevocationStore,
    RevocationStore,
)

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


def create_revocation_store() -> RevocationStore:
    """Build the revocation store selected by REVOCATION_BACKEND."""
    if settings.revocation_backend == "database":
        return DatabaseRevocationStore(async_session_maker)
    return MemoryRevocationStore()


def create_mailer() -> Mailer:
    """Build the SMTP mailer, or the logging one when SMTP_HOST is unset."""
    if not settings.smtp_host:
        return LogMailer()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.mail_from,
        user=settings.smtp_user,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
    )


async def _purge_loop(
    store: RevocationStore,
    session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
) -> None:
    """Periodically drop expired revocations, refresh tokens and reset links."""
    while True:
        await asyncio.sleep(settings.revocation_purge_interval_seconds)
        try:
            removed = await store.purge_expired()
            if removed > 0:
                logger.info(f"Purged {removed} expired token revocations")
            async with session_factory() as db:
                if settings.refresh_token_mode == "stateful":
                    removed = await purge_expired_refresh_tokens(db)
                    if removed > 0:
                        logger.info(f"Purged {removed} expired refresh tokens")
                removed = await purge_expired_password_resets(db)
                if removed > 0:
                    logger.info(f"Purged {removed} expired password reset links")
        except Exception:
            logger.exception("Error purging expired tokens")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    store = create_revocation_store()
    app.state.revocation_store = store
    app.state.mailer = create_mailer()
    logger.info(
        f"Revocation backend: {settings.revocation_backend}, "
        f"refresh token mode: {settings.refresh_token_mode}"
    )

    purge_task = asyncio.create_task(_purge_loop(store), name="token-purge")
    purge_task.add_done_callback(task_done_callback)

    yield

    logger.info("Shutting down...")
    purge_task.cancel()
    try:
        await purge_task
    except asyncio.CancelledError:
        pass

    await store.close()
    app.state.revocation_store = None
    app.state.mailer = None
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Content management backend for interactive fiction authoring",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "Accept-Language",
        ],
    )

    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(api_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
