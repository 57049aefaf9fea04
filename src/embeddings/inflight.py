"""Per-key coordination so concurrent callers compute each embedding once."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Dict, Generic, Tuple, TypeVar

ResultT = TypeVar("ResultT")


class InFlightRegistry(Generic[ResultT]):
    """Tracks computations that have started but not finished.

    The first caller to `claim` a key becomes its owner and must later call
    `resolve` or `fail`. Every other caller receives the owner's future and
    waits on it instead of recomputing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[str, "Future[ResultT]"] = {}

    def claim(self, key: str) -> Tuple["Future[ResultT]", bool]:
        """Return ``(future, is_owner)`` for ``key``."""
        with self._lock:
            future = self._pending.get(key)
            if future is not None:
                return future, False
            future = Future()
            self._pending[key] = future
            return future, True

    def resolve(self, key: str, result: ResultT) -> None:
        with self._lock:
            future = self._pending.pop(key)
        future.set_result(result)

    def fail(self, key: str, exc: BaseException) -> None:
        # Releasing the key lets a later call retry the computation.
        with self._lock:
            future = self._pending.pop(key)
        future.set_exception(exc)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


__all__ = ["InFlightRegistry"]
