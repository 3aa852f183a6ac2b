import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Union


def setup_logger(name: str = "etl", level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Configure and return a logger instance for the warehouse ETL process.
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)

    return logger


@contextmanager
def log_duration(logger: logging.Logger, label: str) -> Iterator[dict]:
    """
    Log start/end timestamps and elapsed seconds around a unit of work.

    The yielded dict is filled with ``started_at``, ``finished_at`` and
    ``duration_seconds`` so callers can keep the timings in their reports.
    """
    timing = {"started_at": datetime.now(), "finished_at": None, "duration_seconds": 0.0}
    logger.info(f">> {label} started at {timing['started_at'].isoformat(timespec='seconds')}")
    start = time.perf_counter()
    try:
        yield timing
    finally:
        timing["finished_at"] = datetime.now()
        timing["duration_seconds"] = round(time.perf_counter() - start, 3)
        logger.info(f">> {label} finished - load duration: {timing['duration_seconds']:.3f} seconds")


def set_log_level(level: Union[str, int], prefixes: tuple = ("etl", "validation", "dags")) -> None:
    """Apply a level to every pipeline logger created through setup_logger."""
    for name in list(logging.root.manager.loggerDict):
        if name.split(".")[0] in prefixes:
            logging.getLogger(name).setLevel(level)
