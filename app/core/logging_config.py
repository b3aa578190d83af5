import logging
import structlog
from app.core.config import settings


def configure_logging():
    """Configure structured logging"""
    level = logging.DEBUG if settings.DEBUG else logging.INFO

    # Human-readable output while developing, JSON lines everywhere else
    if settings.DEBUG or settings.ENVIRONMENT in {"development", "local"}:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            # correlation_id and user_id are bound per request
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level)

    # SQL echo is driven by DEBUG through the engine, keep its logger in step
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
