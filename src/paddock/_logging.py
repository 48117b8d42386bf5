"""Logging setup and provider-call logging for the paddock pipeline."""

from __future__ import annotations

import functools
import logging
import sys
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

API_LOGGER_NAME = "paddock.api"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_api_logger = logging.getLogger(API_LOGGER_NAME)


def configure_logging(level: str | int = "INFO", log_file: Path | str | None = None) -> None:
    """Attach console (and optional file) handlers to the ``paddock`` logger.

    Safe to call more than once; handlers are only added the first time.
    """
    root = logging.getLogger("paddock")
    root.setLevel(level.upper() if isinstance(level, str) else level)
    if getattr(root, "_paddock_configured", False):
        return

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    root._paddock_configured = True  # type: ignore[attr-defined]


def _count(result: Any) -> int:
    if isinstance(result, (list, tuple, dict)):
        return len(result)
    laps = getattr(result, "laps", None)
    if laps is not None:
        return len(laps)
    return 0 if result is None else 1


def log_api_call(fn: F) -> F:
    """Decorator that logs async provider method calls on the ``paddock.api`` logger."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        # Build a readable argument summary (skip 'self')
        arg_parts = [repr(a) for a in args[1:]]
        arg_parts += [f"{k}={v!r}" for k, v in kwargs.items()]
        arg_str = ", ".join(arg_parts)
        _api_logger.debug("CALL: %s(%s)", fn.__qualname__, arg_str)

        start = time.monotonic()
        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            elapsed = time.monotonic() - start
            _api_logger.error(
                "FAIL: %s(%s) -> %s: %s (%.3fs)",
                fn.__qualname__, arg_str, type(exc).__name__, exc, elapsed,
            )
            raise
        elapsed = time.monotonic() - start
        _api_logger.info(
            "OK: %s(%s) -> %d items (%.3fs)",
            fn.__qualname__, arg_str, _count(result), elapsed,
        )
        return result

    return wrapper  # type: ignore[return-value]
