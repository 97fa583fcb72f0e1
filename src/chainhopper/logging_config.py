"""Structured logging: console plus rotating JSON files.

Quote responses and planning decisions each get their own file so a run can
be audited without digging through the application log.
"""

import logging
import logging.handlers
from pathlib import Path

import structlog

from chainhopper.config import LoggingConfig

QUOTE_LOGGER = "chainhopper.quoting"
DECISION_LOGGER = "chainhopper.decisions"

# Handlers installed by configure_logging, tagged so a second call replaces them
_HANDLER_TAG = "_chainhopper_handler"


def _tagged(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def _remove_tagged(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            logger.removeHandler(handler)
            handler.close()


def _rotating(path: str, config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
    )
    handler.setFormatter(formatter)
    return _tagged(handler)


def configure_logging(config: LoggingConfig) -> None:
    """Set up console + file outputs. Safe to call more than once."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(config.level.upper())
    _remove_tagged(root_logger)

    # RPC endpoints and API keys show up in the request logs of these libraries
    library_level = config.library_level.upper()
    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(library_level)

    if config.console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=config.colors),
                foreign_pre_chain=shared_processors,
            )
        )
        root_logger.addHandler(_tagged(console_handler))

    root_logger.addHandler(_rotating(config.app_log, config, json_formatter))

    # Quote and decision records still propagate to the app log
    for name, path in ((QUOTE_LOGGER, config.quote_log), (DECISION_LOGGER, config.decision_log)):
        stream = logging.getLogger(name)
        _remove_tagged(stream)
        stream.addHandler(_rotating(path, config, json_formatter))
        stream.propagate = True


def get_quote_logger() -> structlog.stdlib.BoundLogger:
    """Logger whose records also land in the quote log."""
    return structlog.get_logger(QUOTE_LOGGER)


def get_decision_logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(DECISION_LOGGER)
