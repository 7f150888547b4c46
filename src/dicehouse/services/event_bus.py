"""
Event bus for settlement notifications

The engine publishes only after a ledger transaction has committed, and it
must never wait on whoever is listening. Publishing therefore just enqueues;
a single daemon worker delivers events in publish order. Subscribers are held
through weak references unless asked otherwise, and an exception inside a
subscriber is logged and counted, never propagated.
"""

import logging
import queue
import threading
import time
import weakref
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

_STOP = object()


class Events(Enum):
    """Settlement lifecycle events"""

    VAULT_FUNDED = "vault.funded"
    BET_PLACED = "bet.placed"
    BET_RESOLVED = "bet.resolved"
    BET_WON = "bet.won"
    BET_LOST = "bet.lost"
    BET_REFUNDED = "bet.refunded"
    RESOLUTION_FAILED = "bet.resolution_failed"


def _make_ref(callback: Callable, weak: bool):
    """Weak reference to callback where possible, else the callback itself"""
    if not weak:
        return callback
    try:
        if getattr(callback, "__self__", None) is not None:
            return weakref.WeakMethod(callback)
        return weakref.ref(callback)
    except TypeError:
        return callback


def _deref(ref) -> Callable | None:
    return ref() if isinstance(ref, weakref.ReferenceType) else ref


def _key(callback: Callable) -> tuple[int, int]:
    """Identity of a callback; a bound method is keyed by its object and function"""
    owner = getattr(callback, "__self__", None)
    if owner is not None and hasattr(callback, "__func__"):
        return id(owner), id(callback.__func__)
    return id(callback), 0


class EventBus:
    """
    Queue-backed publish/subscribe

    Subscribers are called with {"name": event.value, "data": payload}.
    """

    def __init__(self, max_queue_size: int = 5000):
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._subscribers: dict[Events, dict[tuple[int, int], Any]] = {}
        self._lock = threading.RLock()
        self._worker: threading.Thread | None = None
        self._running = False
        self._counters = dict.fromkeys(
            ("events_published", "events_processed", "events_dropped", "errors"), 0
        )

    # ========== Lifecycle ==========

    def start(self):
        """Start the delivery worker (no-op if already running)"""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._worker = threading.Thread(target=self._run, name="dicehouse-events", daemon=True)
            self._worker.start()
        logger.info(f"EventBus delivering (queue capacity {self._queue.maxsize})")

    def stop(self, timeout: float = 3.0):
        """Deliver what is already queued, then stop the worker"""
        with self._lock:
            if not self._running:
                return
            self._running = False
            worker = self._worker

        try:
            self._queue.put(_STOP, timeout=0.5)
        except queue.Full:
            logger.warning("EventBus queue full at shutdown; worker will stop once it drains")

        worker.join(timeout=timeout)
        if worker.is_alive():
            logger.error(f"EventBus worker still running after {timeout}s")
        else:
            logger.info("EventBus stopped")

    def flush(self, timeout: float = 2.0) -> bool:
        """
        Wait until every event published so far has been delivered

        Returns:
            False if the queue did not drain within timeout
        """
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    # ========== Subscriptions ==========

    def subscribe(self, event: Events, callback: Callable, weak: bool = True):
        """
        Register callback for event

        Subscribing the same live callback twice has no effect. Lambdas and
        other callables that cannot be weakly referenced are kept strongly.
        """
        with self._lock:
            entries = self._subscribers.setdefault(event, {})
            key = _key(callback)
            if key in entries and _deref(entries[key]) == callback:
                return
            entries[key] = _make_ref(callback, weak)
        logger.debug(f"Subscribed {getattr(callback, '__qualname__', callback)} to {event.value}")

    def unsubscribe(self, event: Events, callback: Callable):
        with self._lock:
            entries = self._subscribers.get(event, {})
            entries.pop(_key(callback), None)
            if not entries:
                self._subscribers.pop(event, None)

    def has_subscribers(self, event: Events) -> bool:
        return bool(self._live_callbacks(event))

    def clear_all(self):
        """Drop every subscription"""
        with self._lock:
            self._subscribers.clear()

    def _live_callbacks(self, event: Events) -> list[Callable]:
        """Resolve subscriptions for event, pruning the ones whose owner is gone"""
        with self._lock:
            entries = self._subscribers.get(event, {})
            live = []
            for key, ref in list(entries.items()):
                callback = _deref(ref)
                if callback is None:
                    del entries[key]
                else:
                    live.append(callback)
            return live

    # ========== Publishing ==========

    def publish(self, event: Events, data: Any = None):
        """Enqueue event; drops it with a warning when the queue is full"""
        try:
            self._queue.put_nowait((event, data))
        except queue.Full:
            self._count("events_dropped")
            logger.warning(f"EventBus queue full, dropped {event.value}")
            return

        self._count("events_published")
        depth, capacity = self._queue.qsize(), self._queue.maxsize
        if capacity and depth * 5 > capacity * 4:
            logger.warning(f"EventBus backlog {depth}/{capacity}")

    def _run(self):
        while True:
            try:
                item = self._queue.get(timeout=0.1)
            except queue.Empty:
                if self._running:
                    continue
                return

            try:
                if item is _STOP:
                    return
                self._deliver(*item)
            finally:
                self._queue.task_done()

    def _deliver(self, event: Events, data: Any):
        message = {"name": event.value, "data": data}
        for callback in self._live_callbacks(event):
            try:
                callback(message)
            except Exception as e:
                self._count("errors")
                logger.error(f"Subscriber to {event.value} raised: {e}", exc_info=True)
            else:
                self._count("events_processed")

    def _count(self, name: str):
        with self._lock:
            self._counters[name] += 1

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            counters = dict(self._counters)
            subscriber_count = sum(len(entries) for entries in self._subscribers.values())
            event_types = len(self._subscribers)
        return {
            **counters,
            "subscriber_count": subscriber_count,
            "event_types": event_types,
            "queue_size": self._queue.qsize(),
            "processing": self._running,
        }


# Global instance
event_bus = EventBus()
