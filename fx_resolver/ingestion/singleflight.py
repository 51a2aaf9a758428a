"""Collapse concurrent calls for the same key into one execution."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, Dict, Hashable, Tuple, TypeVar

T = TypeVar("T")


class SingleFlight:
    """Run at most one call per key at a time.

    The first caller for a key executes ``fn``; callers arriving while it runs
    block and receive the same result (or exception). Nothing is memoised once
    the call completes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, Future] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> Tuple[T, bool]:
        """Return ``(result, shared)``; ``shared`` is True for waiting callers."""

        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = self._calls[key] = Future()
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
                self._calls.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls


__all__ = ["SingleFlight"]
