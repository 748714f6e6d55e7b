"""Database session management and units of work"""

from typing import Awaitable, Callable, TypeVar
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import NullPool
import structlog

from invoicing.core.config import settings
from invoicing.core.exceptions import ConflictError, DatabaseError, InvoicingError
from invoicing.core.logging import metrics_logger
from invoicing.db.base import Base
import invoicing.models  # noqa: F401  registers tables on Base.metadata

logger = structlog.get_logger()

T = TypeVar("T")

# Create async engine
if settings.APP_ENV == "production":
    engine = create_async_engine(
        settings.database_url_async,
        echo=settings.DEBUG,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
    )
else:
    # NullPool doesn't support pool_size and max_overflow
    engine = create_async_engine(
        settings.database_url_async,
        echo=settings.DEBUG,
        poolclass=NullPool,
        pool_pre_ping=True,
    )


def build_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


AsyncSessionLocal = build_session_factory(engine)


async def get_session_factory() -> async_sessionmaker:
    """Dependency providing the session factory used by the services"""
    return AsyncSessionLocal


async def run_in_transaction(
    session_factory: async_sessionmaker,
    work: Callable[[AsyncSession], Awaitable[T]],
    operation: str,
    max_attempts: int = 1,
) -> T:
    """
    Run ``work`` inside one session and one transaction.

    The whole read-modify-write is repeated when a concurrent writer bumped an
    optimistic version underneath us. Domain errors abort immediately and leave
    nothing applied; anything else from the driver is surfaced as DatabaseError.
    """
    start = time.time()
    for attempt in range(1, max_attempts + 1):
        try:
            async with session_factory() as session:
                async with session.begin():
                    result = await work(session)
            metrics_logger.log_performance_metric(
                operation=operation,
                duration=time.time() - start,
                success=True,
                tags={"attempts": str(attempt)}
            )
            return result
        except StaleDataError:
            logger.warning(
                "Concurrent modification detected, retrying",
                operation=operation,
                attempt=attempt,
                max_attempts=max_attempts
            )
        except InvoicingError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database operation failed", operation=operation, error=str(e))
            metrics_logger.log_performance_metric(
                operation=operation,
                duration=time.time() - start,
                success=False
            )
            raise DatabaseError(f"Failed to {operation.replace('_', ' ')}", {"operation": operation})

    metrics_logger.log_performance_metric(
        operation=operation,
        duration=time.time() - start,
        success=False,
        tags={"attempts": str(max_attempts)}
    )
    raise ConflictError(
        "The resource was modified concurrently, please retry",
        {"operation": operation, "attempts": max_attempts}
    )


async def init_db(bind=None):
    """Initialize database (create tables)"""
    # In production, use migrations instead
    if bind is None and settings.APP_ENV == "production":
        logger.info("Skipping table creation in production - use migrations")
        return

    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise


async def close_db():
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
