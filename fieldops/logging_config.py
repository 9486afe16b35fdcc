"""Structured logging for the coordination service.

Application modules keep using ``logging.getLogger(__name__)``; their records
and structlog's own loggers share one formatter, so every line carries the
bound request context (trace_id, user_id, tournament_id). Emergency lifecycle
entries go to a separate audit channel that is never filtered below INFO.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog
from structlog.types import Processor

EMERGENCY_AUDIT_LOGGER = "fieldops.audit.emergency"

# Keys whose values must never reach a log sink
REDACTED_KEYS = frozenset({"token", "authorization", "jwt", "password"})

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


def _redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = "***"
    return event_dict


def _service_tagger(app_env: str) -> Processor:
    def tag(
        _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("service", "fieldops")
        event_dict.setdefault("env", app_env)
        if event_dict.get("logger") == EMERGENCY_AUDIT_LOGGER:
            event_dict["audit"] = True
        return event_dict

    return tag


def _shared_processors(app_env: str, use_json: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if use_json:
        processors.append(_service_tagger(app_env))
        processors.append(structlog.processors.format_exc_info)
    else:
        processors.append(structlog.dev.set_exc_info)
    return processors


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    app_env: str = "development",
) -> None:
    """Install structlog and route stdlib logging through it.

    Args:
        log_level: Root level name (DEBUG, INFO, WARNING, ERROR)
        json_logs: Emit one JSON object per line instead of console output
        app_env: Environment name; production always logs JSON
    """
    use_json = json_logs or app_env == "production"
    processors = _shared_processors(app_env, use_json)

    renderer: Processor
    if use_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.getLevelName(log_level.upper()))

    logging.getLogger(EMERGENCY_AUDIT_LOGGER).setLevel(logging.INFO)
    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Key/value logger, e.g. ``logger.info("mode_changed", mode="EMERGENCY")``."""
    return structlog.get_logger(name)


def get_emergency_logger() -> structlog.stdlib.BoundLogger:
    """Logger for the emergency audit trail (create / resolve / delete)."""
    return structlog.get_logger(EMERGENCY_AUDIT_LOGGER)


def bind_context(**kwargs: Any) -> None:
    """Attach values (trace_id, user_id, ...) to every later log line of this task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
