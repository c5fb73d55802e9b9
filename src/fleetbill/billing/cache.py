"""Single-flight result cache for bill generation."""

import threading
from collections.abc import Callable, Hashable
from concurrent.futures import Future
from typing import Generic, TypeVar

T = TypeVar("T")


class BillCache(Generic[T]):
    """Memoises computed values by key, computing each key at most once.

    The first caller for a key runs ``compute``; any caller arriving while
    that computation is in flight waits on the same Future and receives the
    same result. A computation that raises is evicted so a later call can
    try again.

    Entries are never evicted otherwise; the cache grows with the number of
    distinct keys until :meth:`clear` is called. Billing only ever sees one
    fixed period per run, so it holds a single entry in practice.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, Future[T]] = {}
        self._lock = threading.Lock()

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Return the cached value for ``key``, computing it if needed.

        Args:
            key: Hashable cache key
            compute: Zero-argument callable producing the value

        Returns:
            The value produced by the first ``compute`` for this key

        Raises:
            Exception: Whatever ``compute`` raised, for the caller that ran it
                and for callers that were waiting on it
        """
        with self._lock:
            future = self._entries.get(key)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._entries[key] = future

        if is_owner:
            try:
                value = compute()
            except BaseException as e:
                with self._lock:
                    self._entries.pop(key, None)
                future.set_exception(e)
                raise
            future.set_result(value)
            return value

        return future.result()

    def clear(self) -> None:
        """Drop every cached entry."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
