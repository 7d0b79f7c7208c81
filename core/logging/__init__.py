# Structured logging for the order guard core
import sys
import logging
import structlog
from typing import Optional, Dict, Any, Iterable

from core.config.settings import Settings

# Global flag to prevent duplicate logging configuration
_logging_configured = False

DEFAULT_REDACT_KEYS = (
    "authorization", "api_key", "apikey", "api_secret", "apisecret",
    "api-secret", "secret", "password", "token",
)


def make_redactor(keys: Iterable[str]):
    """Build a processor that masks sensitive keys recursively."""
    keys_to_redact = {k.lower() for k in keys}

    def _redact(obj):
        if isinstance(obj, dict):
            out = {}
            for k, v in obj.items():
                if isinstance(k, str) and k.lower() in keys_to_redact:
                    out[k] = "[REDACTED]"
                else:
                    out[k] = _redact(v)
            return out
        if isinstance(obj, list):
            return [_redact(v) for v in obj]
        return obj

    def redact_sensitive(logger, name, event_dict):
        return _redact(event_dict)

    return redact_sensitive


def configure_logging(settings: Settings) -> None:
    """Configure structlog on top of stdlib logging, once per process."""
    global _logging_configured

    # Prevent duplicate configuration
    if _logging_configured:
        return

    level = settings.logging.level.upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    def add_standard_context(logger, name, event_dict):
        event_dict.setdefault("env", settings.environment.value)
        event_dict.setdefault("service", settings.app_name)
        return event_dict

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.json_format
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            add_standard_context,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            make_redactor(settings.logging.redact_keys or DEFAULT_REDACT_KEYS),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _logging_configured = True


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    logger = structlog.get_logger(name)
    if component:
        logger = logger.bind(component=component)
    return logger


def bind_exchange_context(logger: structlog.BoundLogger, exchange: str,
                          pair: Optional[str] = None) -> structlog.BoundLogger:
    """Bind exchange context consistently to a logger.

    Adds `exchange` and, when given, the display `pair`.
    """
    ctx: Dict[str, Any] = {"exchange": exchange}
    if pair:
        ctx["pair"] = pair
    return logger.bind(**ctx)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_exchange_context",
    "make_redactor",
    "DEFAULT_REDACT_KEYS",
]
