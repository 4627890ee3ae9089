"""
Single-flight: at most one in-progress operation per key.

Concurrent callers asking for the same key share one future. The entry is
removed as soon as that future settles (result, exception, or cancel), so a
later call starts a fresh attempt.
"""

import asyncio
from typing import Callable, Dict, Hashable


class SingleFlight:

    def __init__(self):
        self._calls: Dict[Hashable, asyncio.Future] = {}

    def __contains__(self, key):
        return key in self._calls

    def __len__(self):
        return len(self._calls)

    def get(self, key):
        return self._calls.get(key)

    def run_once(self, key, factory: Callable[[], asyncio.Future]) -> asyncio.Future:
        """
        Return the pending future for `key`, or start one with `factory()`.

        `factory` must return an asyncio.Future (or Task) without awaiting.
        """
        existing = self._calls.get(key)
        if existing is not None and not existing.done():
            return existing

        future = factory()
        if future.done():
            _mark_retrieved(future)
            return future

        self._calls[key] = future
        future.add_done_callback(lambda settled: self._forget(key, settled))
        return future

    def clear(self):
        self._calls.clear()

    def _forget(self, key, future):
        # A reset may already have replaced the entry with a newer attempt
        if self._calls.get(key) is future:
            del self._calls[key]
        _mark_retrieved(future)


def _mark_retrieved(future):
    # Awaiting callers still receive the exception
    if not future.cancelled():
        future.exception()
