"""
Request Queue

Buffers translation requests that arrive while their target language's model
is still loading. When that model becomes ready the orchestrator drains the
items for that language, in arrival order, through the real model and reports
each upgraded result to the update callback.

Items for other languages stay queued untouched; a language switch does not
discard them. The queue is bounded: past `max_items` the oldest item is
dropped.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from .config import MAX_QUEUED_REQUESTS, TRANSLATION_FAILURE_MARKER

logger = logging.getLogger(__name__)


@dataclass
class QueueItem:
    text: str
    target_language: str
    request_id: str
    enqueued_at: float = field(default_factory=time.time)

    @property
    def key(self):
        return (self.text, self.target_language, self.request_id)


class RequestQueue:

    def __init__(self, max_items=MAX_QUEUED_REQUESTS, failure_marker=TRANSLATION_FAILURE_MARKER):
        self._items: List[QueueItem] = []
        self.max_items = max_items
        self.failure_marker = failure_marker

    def __len__(self):
        return len(self._items)

    def items(self, language: Optional[str] = None) -> List[QueueItem]:
        return [item for item in self._items if language is None or item.target_language == language]

    def enqueue(self, text: str, language: str, request_id: str) -> bool:
        """Queue a request. Returns False when the identical tuple is already queued."""
        key = (text, language, request_id)
        if any(item.key == key for item in self._items):
            return False

        logger.debug("Queueing translation %r for %s (request %s)", text, language, request_id)
        self._items.append(QueueItem(text, language, request_id))

        while self.max_items and len(self._items) > self.max_items:
            dropped = self._items.pop(0)
            logger.warning("Request queue full, dropping request %s for %s",
                           dropped.request_id, dropped.target_language)
        return True

    def take(self, language: str) -> List[QueueItem]:
        """Remove and return every item for `language`, oldest first."""
        taken = [item for item in self._items if item.target_language == language]
        self._items = [item for item in self._items if item.target_language != language]
        return taken

    def clear(self, language: Optional[str] = None) -> int:
        before = len(self._items)
        if language is None:
            self._items = []
        else:
            self._items = [item for item in self._items if item.target_language != language]
        return before - len(self._items)

    async def drain(self,
                    language: str,
                    translate: Callable[[str, str], Awaitable[str]],
                    notify: Optional[Callable[[str, str], None]]) -> int:
        """
        Translate every queued item for `language` through `translate` and
        report `(request_id, text)` to `notify`. A failed item reports the
        failure marker instead. Returns the number of items processed.
        """
        items = self.take(language)
        if not items:
            return 0

        logger.info("Processing %d queued translations for %s", len(items), language)
        for item in items:
            try:
                result = await translate(item.text, item.target_language)
            except Exception as exc:
                logger.error("Failed to process queued translation %s: %s", item.request_id, exc)
                result = self.failure_marker

            if notify is None:
                continue
            try:
                notify(item.request_id, result)
            except Exception:
                logger.exception("Translation update callback failed for %s", item.request_id)
        return len(items)
