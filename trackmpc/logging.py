"""
Logging for trackmpc.

Everything logs under the ``trackmpc`` logger, configured on import from:
- TRACKMPC_LOG_LEVEL: level name (default WARNING, the controller runs in a
  tight loop and should stay quiet unless asked)
- TRACKMPC_LOG_FORMAT: "default" or "json"
- TRACKMPC_LOG_FILE: optional file to mirror console output to

Also provides small timing helpers used around the solver.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, List, Optional, TypeVar

import numpy as np

F = TypeVar("F", bound=Callable[..., Any])

PACKAGE_LOGGER = "trackmpc"

LOG_LEVEL_ENV = "TRACKMPC_LOG_LEVEL"
LOG_FORMAT_ENV = "TRACKMPC_LOG_FORMAT"
LOG_FILE_ENV = "TRACKMPC_LOG_FILE"

FORMATS = {
    "default": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    "json": '{"time": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}',
}


def get_log_level() -> int:
    """Level named by TRACKMPC_LOG_LEVEL, WARNING if unset or unknown."""
    name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def get_log_format() -> str:
    return FORMATS.get(os.environ.get(LOG_FORMAT_ENV, "default").lower(), FORMATS["default"])


def get_log_file() -> Optional[str]:
    return os.environ.get(LOG_FILE_ENV) or None


# =============================================================================
# Logger Setup
# =============================================================================

_configured = False
_handlers: List[logging.Handler] = []


def setup_logging(
    level: Optional[int] = None,
    format_str: Optional[str] = None,
    log_file: Optional[str] = None,
    force: bool = False,
) -> logging.Logger:
    """Attach console (and optional file) handlers to the package logger.

    Arguments left as None fall back to the environment. Calling again is a
    no-op unless ``force`` is set, in which case the previous handlers are
    closed and replaced.
    """
    global _configured

    logger = logging.getLogger(PACKAGE_LOGGER)
    if _configured and not force:
        return logger

    while _handlers:
        handler = _handlers.pop()
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level or get_log_level())
    logger.propagate = False
    formatter = logging.Formatter(format_str or get_log_format())

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    file_path = log_file or get_log_file()
    if file_path:
        handlers.append(logging.FileHandler(file_path))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        _handlers.append(handler)

    _configured = True
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Package logger, or its child ``trackmpc.<name>``."""
    if not _configured:
        setup_logging()
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}" if name else PACKAGE_LOGGER)


def LOG_DEBUG(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().debug(msg, *args, **kwargs)


def LOG_INFO(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().info(msg, *args, **kwargs)


def LOG_WARN(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().warning(msg, *args, **kwargs)


def LOG_ERROR(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().error(msg, *args, **kwargs)


# =============================================================================
# Timing
# =============================================================================


@contextmanager
def profile_scope(name: str, log_level: int = logging.DEBUG) -> Iterator[None]:
    """Log the wall time spent inside the block.

    Example:
        with profile_scope("control cycle"):
            command = controller.step(telemetry)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        get_logger().log(log_level, f"{name} took {time.perf_counter() - start:.4f}s")


def timed(func: F) -> F:
    """Log each call's wall time at DEBUG."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        with profile_scope(func.__name__):
            return func(*args, **kwargs)

    return wrapper  # type: ignore


class TimeTracker:
    """Collects per-cycle timings (milliseconds) for a summary at the end.

    Example:
        tracker = TimeTracker("control cycle")
        for telemetry in samples:
            with tracker.measure():
                controller.step(telemetry)
        tracker.print_stats()
    """

    def __init__(self, name: str):
        self.name = name
        self._times: List[float] = []

    def add(self, timing_ms: float) -> None:
        self._times.append(timing_ms)

    @contextmanager
    def measure(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.add((time.perf_counter() - start) * 1000)

    def get_stats(self) -> tuple[float, float, int]:
        """(mean_ms, max_ms, count); zeros when nothing was recorded."""
        if not self._times:
            return 0.0, 0.0, 0
        return float(np.mean(self._times)), float(np.max(self._times)), len(self._times)

    def percentile(self, q: float) -> float:
        """``q``-th percentile in milliseconds (0.0 when empty)."""
        if not self._times:
            return 0.0
        return float(np.percentile(self._times, q))

    def print_stats(self) -> None:
        """Log a one-line summary at INFO."""
        mean, max_val, count = self.get_stats()
        if count == 0:
            LOG_INFO(f"{self.name}: no timings recorded")
            return
        LOG_INFO(
            f"{self.name}: {count} samples, mean {mean:.1f} ms, "
            f"p95 {self.percentile(95):.1f} ms, max {max_val:.1f} ms"
        )

    def reset(self) -> None:
        self._times = []


setup_logging()
