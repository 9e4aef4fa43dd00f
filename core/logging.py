"""Process-wide logging setup shared by the API and the Celery worker."""
import logging
import sys

import structlog

from core.settings import Settings

_CONFIGURED = False


def configure_logging(settings: Settings, *, force: bool = False) -> None:
    """Route stdlib logging to stdout and render structlog events.

    JSON lines when ``APP.JSON_LOGS`` is set, a console renderer otherwise.
    Repeated calls are no-ops unless ``force`` is passed.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    level = logging.getLevelName(settings.APP.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=force,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.APP.JSON_LOGS
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True
