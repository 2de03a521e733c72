"""Load-once memoization shared by the static caches."""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, Generic, Hashable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """
    Memoizes one value per key, computing it at most once.

    The first caller for a key runs the loader; callers arriving while the
    load is in flight wait on the same Future and receive the same result.
    A failed load is reported to every waiter and forgotten, so the next
    call starts a fresh load.
    """

    def __init__(self, name: str = "cache"):
        self.name = name
        self._lock = threading.Lock()
        self._futures: Dict[Hashable, "Future[T]"] = {}

    def get(self, key: Hashable, loader: Callable[[], T]) -> T:
        with self._lock:
            future = self._futures.get(key)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._futures[key] = future

        if not is_owner:
            logger.debug(f"{self.name}: waiting on load for {key}")
            return future.result()

        logger.debug(f"{self.name}: loading {key}")
        try:
            value = loader()
        except BaseException as e:
            with self._lock:
                self._futures.pop(key, None)
            future.set_exception(e)
            raise
        future.set_result(value)
        return value

    def is_loaded(self, key: Hashable) -> bool:
        with self._lock:
            future = self._futures.get(key)
        return future is not None and future.done() and future.exception() is None

    def keys(self) -> List[Hashable]:
        with self._lock:
            return list(self._futures.keys())

    def clear(self) -> None:
        """Forget all values. In-flight loads still complete for their waiters."""
        with self._lock:
            self._futures.clear()
