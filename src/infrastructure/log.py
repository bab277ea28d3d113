"""
Logging setup for the agent - loguru sinks configured once per process.

Modules just do ``from loguru import logger``.  Entry points call
``setup_logging()`` once; after that every record carries the current
conversation turn (``extra["turn"]``), bound by the agent with
``logger.contextualize(turn=n)`` for the duration of a turn, so store
mutations, learning and provider calls of one turn line up in the log.

Chatty third-party loggers (HTTP client, OpenAI SDK, SQLAlchemy engine)
are routed through loguru and held at WARNING unless the process runs
at DEBUG.
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable, Optional

from loguru import logger

_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "turn=<magenta>{extra[turn]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "sqlalchemy.engine", "langfuse")


class _InterceptHandler(logging.Handler):
    """Forward stdlib ``logging`` records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    level: str = "INFO",
    *,
    intercept_stdlib: bool = True,
    log_file: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure loguru for the current process.

    Args:
        level: Minimum level for every sink.
        intercept_stdlib: Route stdlib ``logging`` records through loguru.
        log_file: Optional rotating log file, in addition to stderr.
        quiet: Stdlib logger names capped at WARNING unless ``level`` is DEBUG.
    """
    level = level.upper()
    logger.remove()
    logger.configure(extra={"turn": "-"})

    # stdout belongs to the REPL
    logger.add(sys.stderr, format=_FORMAT, level=level, colorize=True, diagnose=False)
    if log_file:
        logger.add(
            log_file,
            format=_FORMAT,
            level=level,
            rotation="10 MB",
            retention="7 days",
            compression="gz",
        )

    if intercept_stdlib:
        logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
        if level != "DEBUG":
            for name in quiet:
                logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging configured (level={}, file={})", level, log_file or "none")
