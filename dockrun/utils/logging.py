"""Structured logging setup.

Logs always go to stderr (and optionally a rotating file) so stdout stays
reserved for container output.
"""

import logging
import logging.handlers
import sys
from typing import Optional

import structlog

from ..config import LoggingConfig, settings


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure structlog on top of the stdlib root logger."""
    config = config or settings.logging
    level = getattr(logging, config.log_level, logging.INFO)

    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    )

    handlers = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.log_file,
                maxBytes=config.log_max_size_mb * 1024 * 1024,
                backupCount=config.log_backup_count,
            )
        )

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    # docker-py and urllib3 are chatty at DEBUG
    for noisy in ("docker", "urllib3"):
        logging.getLogger(noisy).setLevel(max(level, logging.INFO))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None):
    """Get a structured logger."""
    return structlog.get_logger(name)
