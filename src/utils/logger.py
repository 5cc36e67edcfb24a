import logging
import os

from rich.logging import RichHandler

DEFAULT_LOGGER_NAME = "store"


class PaddedNameFormatter(logging.Formatter):
    """Pads logger names to the widest one seen so messages line up."""

    widest_name = 12

    def format(self, record):
        PaddedNameFormatter.widest_name = max(
            PaddedNameFormatter.widest_name, len(record.name)
        )
        record.name = record.name.ljust(PaddedNameFormatter.widest_name)
        return super().format(record)


def _log_level() -> int:
    if os.getenv("DEBUG"):
        return logging.DEBUG
    name = os.getenv("STORE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger that writes through RichHandler.

    DEBUG in the environment switches every logger to debug output,
    otherwise STORE_LOG_LEVEL (default INFO) is used.
    """
    if name is None:
        name = DEFAULT_LOGGER_NAME
    logger = logging.getLogger(name)
    log_level = _log_level()
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(PaddedNameFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(log_level)
        logger.addHandler(handler)

        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized with RichHandler.")

    return logger
