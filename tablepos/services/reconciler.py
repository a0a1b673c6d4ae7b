# tablepos/services/reconciler.py

import logging
import threading

from tablepos.core.errors import TransportError

logger = logging.getLogger("tablepos.sync")

TABLES = "tables"
SALES = "sales"


class SyncReconciler:
    """Local view of the tables and sales collections, fed by the stores.

    Each feed delivers complete snapshots; a delivery replaces the local copy
    of that collection wholesale. Local writes are not applied here; the view
    only changes when the store echoes a write back through its feed.
    """

    def __init__(self, table_store, sale_store, on_error=None):
        self._table_store = table_store
        self._sale_store = sale_store
        self._on_error = on_error

        self._lock = threading.Lock()
        self._tables = []
        self._sales = []
        self._loaded = {TABLES: False, SALES: False}
        self._generation = 0
        self._unsubscribers = {}
        self._listeners = []

        self.last_error: dict[str, TransportError | None] = {TABLES: None, SALES: None}

    # ---------- lifecycle ----------

    def start(self) -> None:
        if self._unsubscribers:
            return

        with self._lock:
            self._generation += 1
            generation = self._generation

        self._unsubscribers[TABLES] = self._table_store.subscribe(
            lambda snapshot: self._receive(TABLES, generation, snapshot),
            lambda exc: self._fail(TABLES, generation, exc),
        )
        self._unsubscribers[SALES] = self._sale_store.subscribe(
            lambda snapshot: self._receive(SALES, generation, snapshot),
            lambda exc: self._fail(SALES, generation, exc),
        )
        logger.info("Subscribed to tables and sales feeds")

    def stop(self) -> None:
        with self._lock:
            # Deliveries from the cancelled subscriptions are ignored from here on
            self._generation += 1

        for unsubscribe in self._unsubscribers.values():
            unsubscribe()
        self._unsubscribers = {}
        logger.info("Unsubscribed from tables and sales feeds")

    @property
    def running(self) -> bool:
        return bool(self._unsubscribers)

    # ---------- listeners ----------

    def add_listener(self, callback):
        """Call ``callback(feed, snapshot)`` after every accepted delivery."""
        with self._lock:
            self._listeners.append(callback)

        def remove():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return remove

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    # ---------- reads ----------

    @property
    def tables(self) -> list:
        with self._lock:
            return list(self._tables)

    @property
    def sales(self) -> list:
        with self._lock:
            return list(self._sales)

    @property
    def tables_loaded(self) -> bool:
        return self._loaded[TABLES]

    @property
    def sales_loaded(self) -> bool:
        return self._loaded[SALES]

    def is_stale(self, feed: str) -> bool:
        return self.last_error[feed] is not None

    # ---------- feed callbacks ----------

    def _receive(self, feed: str, generation: int, snapshot) -> None:
        with self._lock:
            if generation != self._generation:
                return

            if feed == TABLES:
                snapshot = sorted(snapshot, key=lambda table: table.table_id)
                self._tables = snapshot
            else:
                snapshot = list(snapshot)
                self._sales = snapshot

            self._loaded[feed] = True
            self.last_error[feed] = None
            listeners = list(self._listeners)

        logger.debug(f"{feed} snapshot applied ({len(snapshot)} records)")

        for listener in listeners:
            try:
                listener(feed, list(snapshot))
            except Exception:
                logger.exception(f"{feed} listener raised")

    def _fail(self, feed: str, generation: int, exc: TransportError) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self.last_error[feed] = exc

        # Keep the last good snapshot; the subscription stays open
        logger.error(f"Error fetching {feed}: {exc}")
        if self._on_error is not None:
            self._on_error(feed, exc)
