"""Tiny wall-clock profiler used around each model and each pass."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from utils.logger import Logger

logger = Logger(__name__).get_logger()


class PerfGroup:
    def __init__(self, name: str):
        self.name = name
        self.note: Optional[str] = None
        self._started = time.perf_counter()

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._started) * 1000)


@contextmanager
def perf_group(name: str, log: Optional[logging.Logger] = None) -> Iterator[PerfGroup]:
    """Log the start and the duration of a named unit of work.

    Set ``group.note`` inside the block to append a remark to the summary line.
    """
    log = log or logger
    group = PerfGroup(name)
    log.info(f"[perf] start '{name}'")
    try:
        yield group
    finally:
        suffix = f" - {group.note}" if group.note else ""
        log.info(f"[perf] finished '{name}' in {group.elapsed_ms} ms{suffix}")
