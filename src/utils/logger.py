import logging
import os

from rich.console import Console
from rich.logging import RichHandler

from utils.config import settings


class CenteredFormatter(logging.Formatter):
    longest_name_length = 14  # grows with the longest logger name seen

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )

        width = CenteredFormatter.longest_name_length
        record.name = record.name.center(width)
        return super().format(record)


def _make_handler() -> logging.Handler:
    """
    Terminal output would fight with the TUI for the screen, so when
    LOG_FILE is set the rich handler writes into that file instead.
    """
    if settings.LOG_FILE:
        log_dir = os.path.dirname(settings.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        console = Console(
            file=open(settings.LOG_FILE, "a", encoding="utf-8"),
            width=120,
            no_color=True,
        )
    else:
        console = None

    return RichHandler(
        console=console,
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger configured with RichHandler for rich output.
    """
    if name is None:
        name = "bazaar"
    logger = logging.getLogger(name)
    log_level = (
        logging.DEBUG if settings.DEBUG or os.getenv("DEBUG") else logging.INFO
    )
    logger.setLevel(log_level)

    if not logger.handlers:
        formatter = CenteredFormatter("[%(name)s]  %(message)s")

        handler = _make_handler()
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        logger.addHandler(handler)

        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized with RichHandler.")

    return logger
