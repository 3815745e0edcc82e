"""Single-flight: concurrent calls for the same key share one execution."""
from __future__ import annotations

from concurrent.futures import Future
from threading import Lock
from typing import Any, Callable, Hashable, TypeVar

T = TypeVar("T")


class SingleFlight:
    def __init__(self) -> None:
        self._lock = Lock()
        self._in_flight: dict[Hashable, Future] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> tuple[T, bool]:
        """Run ``fn`` unless a call for ``key`` is already running, in which case wait for it.

        Returns ``(result, shared)`` where ``shared`` is True for callers that
        joined an execution started by someone else. Exceptions raised by the
        leader propagate to every caller.
        """
        with self._lock:
            future = self._in_flight.get(key)
            leader = future is None
            if leader:
                future = Future()
                future.set_running_or_notify_cancel()
                self._in_flight[key] = future

        if not leader:
            return future.result(), True

        try:
            result = fn()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result, False
        finally:
            with self._lock:
                self._in_flight.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._in_flight

    def keys(self) -> list[Any]:
        with self._lock:
            return list(self._in_flight)
