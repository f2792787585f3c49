# gta_watch/services/broadcast.py
import asyncio
import itertools
import logging
import threading
from typing import Any, AsyncIterator, Callable, Dict

log = logging.getLogger(__name__)

STREAM_BUFFER = 100


class Subscription:
    """Handle returned by Broadcaster.subscribe; release() detaches it."""

    def __init__(self, broadcaster: "Broadcaster", key: int):
        self._broadcaster = broadcaster
        self._key = key
        self.active = True

    def release(self):
        if self.active:
            self._broadcaster._remove(self._key)
            self.active = False


class Broadcaster:
    """
    In-process fan-out of newly inserted rows.

    Callbacks run synchronously on the publishing thread. A callback that
    raises is logged and skipped; the remaining subscribers still get the item.
    """

    def __init__(self):
        self._subscribers: Dict[int, Callable[[Any], None]] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[Any], None]) -> Subscription:
        with self._lock:
            key = next(self._ids)
            self._subscribers[key] = callback
        return Subscription(self, key)

    def _remove(self, key: int):
        with self._lock:
            self._subscribers.pop(key, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, item: Any):
        with self._lock:
            callbacks = list(self._subscribers.values())
        for cb in callbacks:
            try:
                cb(item)
            except Exception:
                log.exception("Live subscriber failed to handle an event")

    async def stream(self, maxsize: int = STREAM_BUFFER) -> AsyncIterator[Any]:
        """
        Async iterator over published items for the current event loop.

        Publishing may happen on a worker thread, so items are handed to the
        loop with call_soon_threadsafe. A consumer that falls `maxsize` items
        behind misses the newer ones until it catches up.
        """
        loop = asyncio.get_running_loop()
        q: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

        def offer(item):
            try:
                q.put_nowait(item)
            except asyncio.QueueFull:
                log.warning("Live stream consumer is %d events behind; dropping event", q.qsize())

        sub = self.subscribe(lambda item: loop.call_soon_threadsafe(offer, item))
        try:
            while True:
                yield await q.get()
        finally:
            sub.release()
