"""Observability helpers for instrumenting storefront operations."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Callable, ParamSpec, TypeVar

from tailor_app.errors import TailorError
from tailor_app.logging_config import (
    ensure_correlation_id,
    get_logger,
    log_event,
    redact_for_log,
)

LOGGER = get_logger(__name__)
P = ParamSpec("P")
R = TypeVar("R")


def _preview_kwargs(kwargs: dict, max_keys: int = 6) -> dict:
    preview: dict = {}
    for idx, (key, value) in enumerate(kwargs.items()):
        if idx >= max_keys:
            preview["truncated"] = True
            break
        if isinstance(value, (str, int, float, bool)) or value is None:
            preview[key] = value
        else:
            preview[key] = type(value).__name__
    return redact_for_log(preview)


def instrument_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Wrap a callable to emit started/completed/failed logs with durations.

    Expected domain errors (:class:`TailorError`) are logged at WARNING without a
    traceback; anything else is logged at ERROR with ``exc_info``.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            correlation_id = ensure_correlation_id()
            start = time.perf_counter()
            log_event(
                LOGGER,
                logging.INFO,
                "operation_started",
                operation=operation,
                correlation_id=correlation_id,
                kwargs=_preview_kwargs(kwargs),
            )
            try:
                result = func(*args, **kwargs)
            except TailorError as exc:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "operation_rejected",
                    operation=operation,
                    correlation_id=correlation_id,
                    duration_ms=duration_ms,
                    error=exc.code,
                )
                raise
            except Exception:
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                log_event(
                    LOGGER,
                    logging.ERROR,
                    "operation_failed",
                    operation=operation,
                    correlation_id=correlation_id,
                    duration_ms=duration_ms,
                    exc_info=True,
                )
                raise
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            log_event(
                LOGGER,
                logging.INFO,
                "operation_completed",
                operation=operation,
                correlation_id=correlation_id,
                duration_ms=duration_ms,
            )
            return result

        return wrapper

    return decorator


__all__ = ["instrument_operation"]
