import logging.config
from typing import Any

import structlog

from pricestream.core.config import settings

Logger = structlog.stdlib.BoundLogger

HANDLER: str = "console"
QUIET_LOGGERS: tuple[str, ...] = ("websockets.client", "aiohttp.access")


def shared_processors(production: bool) -> list[Any]:
    """Processors run for structlog and stdlib records alike"""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.StackInfoRenderer(),
    ]

    # JSON output needs tracebacks flattened into the event dict
    if production:
        processors.append(structlog.processors.format_exc_info)

    return processors


def renderer(production: bool) -> Any:
    if production:
        return structlog.processors.JSONRenderer()

    return structlog.dev.ConsoleRenderer(colors=True)


def logging_config(level: str, production: bool) -> dict[str, Any]:
    """dictConfig routing every stdlib logger through structlog's formatter"""
    quiet = {
        name: {"handlers": [HANDLER], "level": "WARNING", "propagate": False}
        for name in QUIET_LOGGERS
    }

    return {
        "version": 1,
        "disable_existing_loggers": True,
        "formatters": {
            "pricestream": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer(production),
                ],
                "foreign_pre_chain": shared_processors(production),
            },
        },
        "handlers": {
            HANDLER: {
                "level": level,
                "class": "logging.StreamHandler",
                "formatter": "pricestream",
            },
        },
        "loggers": {
            "": {"handlers": [HANDLER], "level": level, "propagate": False},
            **quiet,
        },
    }


def configure() -> None:
    production = settings.is_production

    logging.config.dictConfig(logging_config(settings.LOG_LEVEL, production))

    structlog.configure_once(
        processors=shared_processors(production)
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=Logger,
        cache_logger_on_first_use=True,
    )
