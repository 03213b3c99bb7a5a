"""
Structured logging configuration.

Every log line is one JSON object carrying the app name, environment and
whatever request context (request_id, correlation_id) is bound for the
current task. Debug runs render to the console instead.
"""
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

import structlog
from pythonjsonlogger import jsonlogger

from payment_orchestrator.config import Settings, get_settings

EventDict = Dict[str, Any]

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "urllib3": logging.WARNING,
    "stripe": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def app_context_processor(settings: Settings) -> Callable[[Any, str, EventDict], EventDict]:
    """Build a processor stamping app name and environment on each event."""
    app_name = settings.app_name
    app_env = settings.app_env

    def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app_name", app_name)
        event_dict.setdefault("app_env", app_env)
        return event_dict

    return add_app_context


def _renderer(settings: Settings) -> Any:
    if settings.debug and sys.stdout.isatty():
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog on top of stdlib logging.

    Safe to call more than once; the root handler is replaced each time.
    """
    settings = settings or get_settings()

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        app_context_processor(settings),
        _renderer(settings),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Records from libraries that log through stdlib directly
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "@timestamp", "levelname": "level", "name": "logger"},
        )
    )

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        app_env=settings.app_env,
    )


def bind_request_context(**values: Any) -> None:
    """Bind values (request_id, correlation_id, ...) to every log line of this task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    """Drop all values bound for the current task."""
    structlog.contextvars.clear_contextvars()
