"""Logging setup shared by the CLI and the HTTP app."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from tasador_rural.config import settings

LOG_FORMAT = "%(name)s | %(message)s"


def configure_logging(level: str | None = None, console: Console | None = None) -> None:
    """Install a rich handler on the root logger.

    Safe to call more than once: the previous rich handler is replaced.
    """
    level_name = (level or settings.log_level).upper()
    root = logging.getLogger()

    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
