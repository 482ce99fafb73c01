"""Structured logging for RelayChat using structlog."""

import logging
import os

import structlog
from structlog.types import FilteringBoundLogger


def configure_structlog():
    """Configure structlog with pretty or JSON output based on LOG_FORMAT env.

    Stdlib logging is routed through structlog so third-party libraries share
    the same renderer and level controls.
    """
    log_format = os.getenv("LOG_FORMAT", "pretty").lower()
    log_colors_env = os.getenv("LOG_COLORS", "true").lower()
    log_colors = log_colors_env in ("true", "1", "yes", "on")

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=log_colors)

    logging.root.handlers = []
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.INFO)

    logging.captureWarnings(True)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.INFO)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_structlog()


def request_log(
    logger: FilteringBoundLogger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    **kwargs,
):
    """Log HTTP request with details."""
    logger.info(
        f"{method} {path} - {status_code}",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
        **kwargs,
    )


def stream_log(
    logger: FilteringBoundLogger, event_type: str, content: str | None = None, **kwargs
):
    """Log streamed chunk events."""
    logger.debug(
        f"Stream chunk: {event_type}",
        event_type=event_type,
        content=content[:300] if content else None,
        **kwargs,
    )


def get_logger(name: str, level: int = logging.INFO) -> FilteringBoundLogger:
    """Get a configured structlog logger."""
    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(level)
    return structlog.get_logger(name)


logger = get_logger("relaychat")
api_logger = get_logger("relaychat.api", level=logging.DEBUG)
agent_logger = get_logger("relaychat.agents", level=logging.DEBUG)
stream_logger = get_logger("relaychat.streams", level=logging.DEBUG)
