"""Loguru setup for the CLI, the API and the check strategies.

Everything goes to stderr so the Rich summaries on stdout stay clean when
a batch runs under cron. ``LOG_FILE`` adds a rotating JSON file sink.
"""

import sys
from typing import Optional

from loguru import logger

from directory_verifier.config.settings import settings

_DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | <level>{message}</level> | {extra}"
)


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    (Re)configure loguru sinks.

    Console format with colours when stderr is a terminal and LOG_FORMAT is
    ``console``; JSON lines otherwise.

    Args:
        level: Overrides LOG_LEVEL (the CLI's ``--log-level``)
        log_file: Overrides LOG_FILE
    """
    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger.remove()
    logger.configure(extra={"component": "-"})

    if sys.stderr.isatty() and settings.log_format.lower() == "console":
        logger.add(sys.stderr, format=_DEV_FORMAT, level=level, colorize=True)
    else:
        logger.add(sys.stderr, format="{message}", level=level, serialize=True, diagnose=False)

    if log_file:
        logger.add(
            log_file,
            level=level,
            serialize=True,
            rotation="10 MB",
            retention=5,
            enqueue=True,
            diagnose=False,
        )


def get_logger(component: str):
    """
    Logger bound to a component name, e.g. ``get_logger("check.phone_valid")``.

    Pass dynamic values as keyword arguments; they land in ``extra``.
    """
    return logger.bind(component=component)


configure_logging()

__all__ = ["logger", "get_logger", "configure_logging"]
