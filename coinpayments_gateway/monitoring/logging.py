"""
Structured logging for the gateway.

structlog renders each event as JSON and hands it to the stdlib root
logger, whose python-json-logger handler wraps it with timestamp, level
and logger name. Request-scoped fields (``request_id``, ``method``,
``path``) are bound as contextvars by the API middleware.
"""
import logging
import sys
from typing import Any, List, Optional

import structlog
from pythonjsonlogger import jsonlogger

from coinpayments_gateway.config import Settings, get_settings

# Third-party loggers that log every outbound request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")

JSON_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
JSON_FIELD_NAMES = {"asctime": "@timestamp", "levelname": "level", "name": "logger"}


def _service_fields(settings: Settings) -> Any:
    def add_service_fields(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("app_name", settings.app_name)
        event_dict.setdefault("app_env", settings.app_env)
        return event_dict

    return add_service_fields


def _processors(settings: Settings) -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_fields(settings),
        structlog.processors.JSONRenderer(),
    ]


def _json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(JSON_LOG_FORMAT, rename_fields=JSON_FIELD_NAMES)
    )
    return handler


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Safe to call more than once; the root logger ends up with a single
    JSON handler at the configured level.
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(_json_handler())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        app_env=settings.app_env,
    )
