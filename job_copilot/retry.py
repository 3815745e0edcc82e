"""Retry decorator with exponential backoff — stdlib only.

Only used for idempotent calls (document generation, Google reads/writes).
Submissions are never wrapped: a retried submission can apply twice.
"""
from __future__ import annotations

import functools
import logging
import random
import time
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Callable[[BaseException], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Decorator: retries the wrapped function with exponential backoff.

    ``should_retry`` narrows ``retryable`` further, e.g. to retry only 429/5xx
    responses out of all ``requests.HTTPError``.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if should_retry is not None and not should_retry(exc):
                        raise
                    if attempt == max_attempts:
                        logger.error(
                            "%s failed after %d attempts: %s",
                            fn.__qualname__,
                            max_attempts,
                            exc,
                        )
                        raise
                    delay = min(
                        base_delay * (backoff_factor ** (attempt - 1)), max_delay
                    )
                    if jitter:
                        delay *= 0.5 + random.random()
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        fn.__qualname__,
                        attempt,
                        max_attempts,
                        exc,
                        delay,
                    )
                    sleep(delay)
            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper

    return decorator


def is_transient_http_error(exc: BaseException) -> bool:
    """True for connection problems and 429/5xx responses."""
    response = getattr(exc, "response", None)
    if response is None:
        return True
    status = getattr(response, "status_code", None) or getattr(exc, "status_code", None)
    return status is None or status == 429 or status >= 500
