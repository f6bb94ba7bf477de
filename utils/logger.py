"""
Logging setup shared by the CLI, the spiders and the traversal helpers.

Modules grab a named logger once at import time::

    logger = Logger(__name__).get_logger()

and the entrypoint calls ``Logger.configure(log_level=...)`` exactly once.
Scrapy is started with ``install_root_handler=False`` so its records flow
through the same root handler.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class Logger:
    """Thin wrapper that hands out named loggers and owns root configuration."""

    # Noisy third-party loggers kept one step quieter than the project level
    QUIET = ("scrapy.core.engine", "scrapy.middleware", "scrapy.extensions", "asyncio")

    def __init__(self, name: str):
        self.name = name

    def get_logger(self) -> logging.Logger:
        return logging.getLogger(self.name)

    @classmethod
    def configure(
        cls,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
    ) -> logging.Logger:
        """(Re)configure the root logger with a rich console handler.

        Args:
        - log_level: textual level, e.g. ``"DEBUG"``.
        - log_file: optional path; when given, a rotating file handler is added.
        """
        root = logging.getLogger()
        root.handlers.clear()
        root.setLevel(log_level)

        console = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
        console.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
        root.addHandler(console)

        if log_file is not None:
            handler = RotatingFileHandler(
                filename=str(log_file),
                maxBytes=5 * 1024 * 1024,
                backupCount=3,
                encoding="utf-8",
            )
            handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            root.addHandler(handler)

        if logging.getLevelName(log_level) == logging.DEBUG:
            return root
        for name in cls.QUIET:
            logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
        return root
