"""Main FastAPI application entry point"""

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from invoicing import __version__
from invoicing.api.v1.router import api_router
from invoicing.core.config import settings
from invoicing.core.exceptions import setup_exception_handlers
from invoicing.core.logging import LoggingMiddleware, setup_logging
from invoicing.db.session import close_db, get_session_factory, init_db
from invoicing.services.aws.event_bridge import event_bridge_service

setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting invoicing backend", env=settings.APP_ENV, version=__version__)
    await init_db()
    await event_bridge_service.initialize()
    logger.info("Invoicing backend ready", events_enabled=event_bridge_service.enabled)

    yield

    await event_bridge_service.close()
    await close_db()
    logger.info("Invoicing backend stopped")


def register_service_routes(app: FastAPI):
    """Unauthenticated liveness and discovery endpoints"""

    @app.get("/health")
    async def health_check(session_factory: async_sessionmaker = Depends(get_session_factory)):
        database = "ok"
        try:
            async with session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("Health check failed", error=str(e))
            database = "unavailable"
        return {
            "status": "healthy" if database == "ok" else "degraded",
            "database": database,
            "events": "enabled" if event_bridge_service.enabled else "disabled",
            "version": __version__,
            "environment": settings.APP_ENV,
        }

    @app.get("/")
    async def root():
        return {
            "message": f"{settings.APP_NAME} API",
            "version": __version__,
            "docs": "/api/docs" if settings.DEBUG else None,
        }


def create_application() -> FastAPI:
    """Build the app: CORS, request logging, error envelope, /api routers"""
    docs_enabled = settings.DEBUG
    app = FastAPI(
        title=settings.APP_NAME,
        version=__version__,
        docs_url="/api/docs" if docs_enabled else None,
        redoc_url="/api/redoc" if docs_enabled else None,
        openapi_url="/api/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    # Added last runs first: CORS wraps request logging
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    setup_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    register_service_routes(app)
    return app


app = create_application()


if __name__ == "__main__":
    uvicorn.run(
        "invoicing.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,  # structlog owns logging
    )
