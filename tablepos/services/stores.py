"""Contracts for the remote table and sale stores, plus the snapshot feed.

A store pushes the complete current listing of its collection to every
subscriber whenever that collection changes. Subscribers never receive diffs.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from tablepos.core.errors import TransportError

logger = logging.getLogger("tablepos.feed")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _Subscriber:
    def __init__(self, on_snapshot, on_error):
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True


class SnapshotFeed:
    """Callback registry that delivers full snapshots of one collection.

    ``loader`` returns the current listing or raises ``TransportError``. The
    current snapshot is delivered once on subscribe and again on every
    ``publish()``.
    """

    def __init__(self, name: str, loader):
        self.name = name
        self._loader = loader
        self._subscribers: list[_Subscriber] = []
        self._lock = threading.Lock()
        # Serializes load+deliver so subscribers see snapshots in load order
        self._publish_lock = threading.RLock()

    def subscribe(self, on_snapshot, on_error=None):
        subscriber = _Subscriber(on_snapshot, on_error)
        with self._lock:
            self._subscribers.append(subscriber)

        with self._publish_lock:
            self._deliver([subscriber])

        def unsubscribe():
            subscriber.active = False
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        if not subscribers:
            return

        with self._publish_lock:
            self._deliver(subscribers)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _deliver(self, subscribers) -> None:
        try:
            snapshot = list(self._loader())
        except TransportError as exc:
            logger.warning(f"{self.name} feed delivery failed: {exc}")
            for subscriber in subscribers:
                self._notify_error(subscriber, exc)
            return

        for subscriber in subscribers:
            if not subscriber.active:
                continue
            try:
                subscriber.on_snapshot(list(snapshot))
            except Exception:
                logger.exception(f"{self.name} feed subscriber raised")

    def _notify_error(self, subscriber, exc) -> None:
        if not subscriber.active or subscriber.on_error is None:
            return
        try:
            subscriber.on_error(exc)
        except Exception:
            logger.exception(f"{self.name} feed error handler raised")


class TableStore(ABC):
    """Remote store holding one document per table."""

    @abstractmethod
    def subscribe(self, on_snapshot, on_error=None):
        """Register for table snapshots; returns an unsubscribe callable."""
        raise NotImplementedError

    @abstractmethod
    async def upsert_merge(self, table_id: int, fields: dict) -> None:
        """Create the table with closed defaults if missing, then set only ``fields``."""
        raise NotImplementedError

    @abstractmethod
    async def replace(self, table_id: int, fields: dict) -> None:
        """Overwrite the table's order, total and status with ``fields``."""
        raise NotImplementedError


class SaleStore(ABC):
    """Remote append-only store of sales."""

    @abstractmethod
    def subscribe(self, on_snapshot, on_error=None):
        """Register for sale snapshots; returns an unsubscribe callable."""
        raise NotImplementedError

    @abstractmethod
    async def append(self, fields: dict) -> int:
        """Record a sale and return its id.

        Appending twice with the same ``request_id`` returns the first id.
        """
        raise NotImplementedError

    @abstractmethod
    async def find(self, request_id: str):
        """Return the sale recorded under ``request_id``, or ``None``."""
        raise NotImplementedError
