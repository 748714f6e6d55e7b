"""Structured logging configuration"""

import logging
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from invoicing.core.config import settings

# Third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "boto3": logging.WARNING,
    "botocore": logging.WARNING,
    "urllib3": logging.WARNING,
    "passlib": logging.ERROR,
}

# Paths polled by load balancers; logged only when they fail
UNLOGGED_PATHS = frozenset({"/health"})

REQUEST_ID_HEADER = "X-Request-ID"


def add_service_context(logger, method_name, event_dict):
    """Stamp every record with the service name and environment"""
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict.setdefault("env", settings.APP_ENV)
    return event_dict


def build_processors(with_callsite: bool) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if with_callsite:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )
    return processors


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None):
    """
    Configure structlog and route stdlib logging through the same renderer.

    JSON lines in production (``LOG_FORMAT=json``), a coloured console
    renderer otherwise. Call sites are only added outside production since
    they are expensive to compute on every record.
    """
    level = (level or settings.LOG_LEVEL).upper()
    log_format = log_format or settings.LOG_FORMAT
    shared_processors = build_processors(with_callsite=settings.APP_ENV != "production")

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    for name, cap in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(cap)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and log its outcome"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            route=f"{request.method} {request.url.path}",
        )
        logger = structlog.get_logger("http")
        quiet = request.url.path in UNLOGGED_PATHS
        start = time.perf_counter()

        if not quiet:
            logger.debug(
                "Request started",
                query_params=dict(request.query_params),
                client_host=request.client.host if request.client else None,
            )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                duration=round(time.perf_counter() - start, 3),
                exception_type=type(e).__name__,
            )
            raise

        duration = round(time.perf_counter() - start, 3)
        if response.status_code >= 500:
            logger.error("Request completed", status_code=response.status_code, duration=duration)
        elif response.status_code >= 400:
            logger.warning("Request completed", status_code=response.status_code, duration=duration)
        elif not quiet:
            logger.info("Request completed", status_code=response.status_code, duration=duration)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class MetricsLogger:
    """Emits metric records on the ``metrics`` logger for log-based dashboards"""

    def __init__(self):
        self.logger = structlog.get_logger("metrics")

    def _emit(self, kind: str, **fields: Any):
        self.logger.info(kind, recorded_at=datetime.now(timezone.utc).isoformat(), **fields)

    def log_business_metric(
        self,
        metric_name: str,
        value: Any,
        tags: Optional[Dict[str, str]] = None,
        unit: Optional[str] = None
    ):
        """Invoice created, payment applied, request reviewed, ledger drift"""
        self._emit("business_metric", metric_name=metric_name, value=value, tags=tags or {}, unit=unit)

    def log_performance_metric(
        self,
        operation: str,
        duration: float,
        success: bool,
        tags: Optional[Dict[str, str]] = None
    ):
        """Duration of one unit of work, including its retries"""
        self._emit(
            "performance_metric",
            operation=operation,
            duration=round(duration, 3),
            success=success,
            tags=tags or {},
        )

    def log_aws_api_call(
        self,
        service: str,
        operation: str,
        duration: float,
        success: bool,
        error_code: Optional[str] = None
    ):
        self._emit(
            "aws_api_call",
            service=service,
            operation=operation,
            duration=round(duration, 3),
            success=success,
            error_code=error_code,
        )


metrics_logger = MetricsLogger()
