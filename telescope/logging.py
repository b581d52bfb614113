from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from telescope.watchers import TelescopeLogHandler

_CONFIGURED = False


def configure_logging(level: int = logging.INFO, *, json: bool = True) -> None:
    """Configure structlog + stdlib logging.

    Safe to call multiple times (no-op after first call). A log-watcher handler
    already attached to the root logger is kept.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer: Any = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    formatter = structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler, *(h for h in root.handlers if isinstance(h, TelescopeLogHandler))]
    root.setLevel(level)

    _CONFIGURED = True
