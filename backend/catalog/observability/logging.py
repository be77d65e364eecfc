"""Structured logging.

Everything (structlog loggers, stdlib loggers, uvicorn) goes to stdout through
one handler. Production emits one JSON object per line for the log shipper;
other environments get the human-readable console renderer.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

SERVICE_NAME = "catalog-api"

_CONFIGURED = False


def _add_service(environment: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("env", environment)
        return event_dict

    return processor


def configure_logging(*, level: str | int = "INFO", environment: str = "development") -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _add_service(environment),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if environment == "production"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level if isinstance(level, int) else str(level).upper())

    # The access middleware already logs every request.
    logging.getLogger("uvicorn.access").disabled = True
    for name in ("uvicorn", "uvicorn.error", "botocore", "boto3"):
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True
    # botocore is chatty at INFO (credential lookups, retries it handles itself).
    logging.getLogger("botocore").setLevel(logging.WARNING)

    processors: list[Any] = [*shared, structlog.processors.StackInfoRenderer()]
    if environment == "production":
        # JSON needs the traceback as a string; the console renderer formats its own.
        processors.append(structlog.processors.format_exc_info)
    processors.append(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _CONFIGURED = True


def get_logger(name: str | None = None):
    return structlog.get_logger(name)
