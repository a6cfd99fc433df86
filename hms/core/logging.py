import logging
import sys
from typing import Optional

import structlog
from pythonjsonlogger import jsonlogger

from ..config import Settings, get_settings

_HANDLER_NAME = "hms-stream"


def setup_logging(settings: Optional[Settings] = None):
    """Structured logging setup for the store and its tooling"""
    settings = settings or get_settings()

    if settings.log_json:
        renderer = structlog.processors.JSONRenderer()
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s"
        )
    else:
        renderer = structlog.dev.ConsoleRenderer()
        formatter = logging.Formatter("%(levelname)-8s %(name)s: %(message)s")

    structlog.configure(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Setup root logger; calling twice must not stack handlers
    logger = logging.getLogger()
    for existing in list(logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            logger.removeHandler(existing)
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(settings.log_level)

    if settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    return structlog.get_logger("hms")
