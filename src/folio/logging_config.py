"""Structured logging: console output plus rotating JSON files per stream.

Three files are written: the application log (everything), the auction log
(lifecycle events from ``Folio``) and the planner log (one line per planned
trade). Calling ``configure_logging`` again replaces the handlers it
installed earlier instead of stacking new ones.
"""

import logging
import logging.handlers
from pathlib import Path

import structlog

from folio.config import LoggingConfig

AUCTION_LOGGER = "folio.auctions"
PLANNER_LOGGER = "folio.planner"

_HANDLER_MARK = "_folio_handler"


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _install(logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_MARK, True)
    logger.addHandler(handler)


def _remove_installed(logger: logging.Logger) -> None:
    for handler in [h for h in logger.handlers if getattr(h, _HANDLER_MARK, False)]:
        logger.removeHandler(handler)
        handler.close()


def _file_handler(path: str, config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
    )
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LoggingConfig) -> None:
    """Route structlog through stdlib logging to the console and the log files."""
    shared = _shared_processors()

    structlog.configure(
        processors=[
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared,
    )
    console_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=True),
        foreign_pre_chain=shared,
    )

    root_logger = logging.getLogger()
    auction_logger = logging.getLogger(AUCTION_LOGGER)
    planner_logger = logging.getLogger(PLANNER_LOGGER)
    for logger in (root_logger, auction_logger, planner_logger):
        _remove_installed(logger)

    root_logger.setLevel(getattr(logging, config.level))
    logging.getLogger("redis").setLevel(logging.WARNING)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(console_formatter)
    _install(root_logger, console_handler)
    _install(root_logger, _file_handler(config.app_log, config, json_formatter))

    # auction and planner records also reach the app log through the root
    _install(auction_logger, _file_handler(config.auction_log, config, json_formatter))
    _install(planner_logger, _file_handler(config.planner_log, config, json_formatter))


def get_auction_logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(AUCTION_LOGGER)


def get_planner_logger() -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(PLANNER_LOGGER)
