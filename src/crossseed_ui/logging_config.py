"""
Logging configuration for CrossSeed UI.

structlog is bridged onto the standard library so that uvicorn, httpx and
APScheduler records share the same handlers and renderer:
- Console output (JSON in production, colourised key/value elsewhere)
- Rotating ``all.log`` and ``error.log`` files, plus ``debug.log`` at DEBUG
- Masking of API keys, passwords and tokens before anything is rendered
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

import structlog

from crossseed_ui.config import settings

_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
_BACKUP_COUNT = 5

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "passwd",
        "secret",
        "token",
        "api_key",
        "apikey",
        "authorization",
        "cookie",
    }
)


def drop_color_message_key(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Remove uvicorn's duplicated ``color_message`` key."""
    event_dict.pop("color_message", None)
    return event_dict


def censor_sensitive_data(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Mask values of sensitive keys.

    Keeps the first four characters so operators can still tell two keys apart
    when troubleshooting.
    """
    for key, value in event_dict.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            if isinstance(value, str) and value:
                event_dict[key] = f"{value[:4]}{'*' * min(max(len(value) - 4, 0), 8)}"

    return event_dict


def _rotating_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def configure_logging() -> None:
    """
    Configure application logging.

    Safe to call more than once; the root logger's handlers are replaced.
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, settings.log_level.upper())
    is_debug = settings.log_level.upper() == "DEBUG"
    is_production = settings.environment == "production"

    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        censor_sensitive_data,
        drop_color_message_key,
    ]

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    handlers: list[logging.Handler] = [
        console_handler,
        _rotating_handler(log_dir / "all.log", logging.DEBUG if is_debug else logging.INFO),
        _rotating_handler(log_dir / "error.log", logging.ERROR),
    ]
    if is_debug:
        handlers.append(_rotating_handler(log_dir / "debug.log", logging.DEBUG))

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer() if is_production else structlog.dev.ConsoleRenderer(),
        ],
    )
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Reduce noise from verbose libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING if not is_debug else logging.INFO)
    logging.getLogger("apscheduler").setLevel(logging.WARNING if not is_debug else logging.INFO)

    structlog.get_logger(__name__).info(
        "logging_configured",
        log_level=settings.log_level,
        environment=settings.environment,
        log_dir=str(log_dir.absolute()),
        debug_log=is_debug,
    )
