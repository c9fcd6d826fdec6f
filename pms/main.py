"""
PMS FastAPI application entry point.

Request flow for mutations: capabilities → thread/task gate → commit →
notifications dispatched after the response.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pms import __version__
from pms.config import get_settings
from pms.db.session import SessionLocal, check_db_connection, engine
from pms.services.attachment_storage import AttachmentStorage
from pms.services.email_service import SmtpMailer
from pms.services.notifications import NotificationDispatcher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info("PMS starting")
    try:
        try:
            check_db_connection()
            logger.info("Database connection verified")
        except Exception as e:
            logger.critical("Database unreachable: %s", e)
            raise

        if not app.state.notifier.mailer.configured:
            logger.warning("SMTP host not configured; notification emails will be skipped")

        yield
    finally:
        logger.info("PMS shutting down")
        engine.dispose()
        logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Process-wide collaborators, built once and reached through pms.api.deps
    app.state.notifier = NotificationDispatcher(
        SessionLocal,
        SmtpMailer(settings),
        email_enabled=settings.notification_email_enabled,
    )
    app.state.attachment_storage = AttachmentStorage(settings.upload_root)

    from pms.api.auth import router as auth_router
    from pms.api.comments import router as comments_router
    from pms.api.notifications import router as notifications_router
    from pms.api.tasks import router as tasks_router

    app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    app.include_router(comments_router, prefix="/api/comments", tags=["comments"])
    app.include_router(tasks_router, prefix="/api/tasks", tags=["tasks"])
    app.include_router(
        notifications_router, prefix="/api/notifications", tags=["notifications"]
    )

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint. Confirms DB connectivity."""
        from sqlalchemy import text

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {
                "status": "ok",
                "version": __version__,
                "database": "connected",
            }
        except Exception:
            from fastapi.responses import JSONResponse

            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "version": __version__,
                    "database": "disconnected",
                },
            )

    return app


app = create_app()
