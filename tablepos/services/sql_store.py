# =========================================================
# SQL-BACKED TABLE & SALE STORES
#
# Every committed write republishes the full collection to
# the feed subscribers. Blocking database work runs in the
# threadpool so the event loop is never held by a query.
# =========================================================

import logging
from datetime import timezone
from decimal import Decimal

from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tablepos.core.errors import TransportError
from tablepos.models.sales import Sale as SaleRecord
from tablepos.models.tables import DiningTable
from tablepos.schemas.sale import Sale
from tablepos.schemas.table import Table, TableStatus
from tablepos.services.stores import SaleStore, SnapshotFeed, TableStore, utc_now

logger = logging.getLogger("tablepos.store")

TABLE_FIELDS = ("status", "order", "total", "updated_by")


def _serialize_lines(lines):
    return [
        line.model_dump(mode="json") if isinstance(line, BaseModel) else dict(line)
        for line in lines
    ]


def _column_values(fields: dict) -> dict:
    values = {}
    for key, value in fields.items():
        if key == "table_id":
            continue
        if key not in TABLE_FIELDS:
            raise ValueError(f"Unknown table field: {key}")

        if key == "order":
            value = _serialize_lines(value)
        elif key == "status":
            value = TableStatus(value).value
        elif key == "total":
            value = Decimal(value)

        values[key] = value
    return values


def _calendar_date(moment) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()


# =========================================================
# TABLES
# =========================================================
class SqlTableStore(TableStore):
    def __init__(self, session_factory, clock=utc_now):
        self._session_factory = session_factory
        self._clock = clock
        self.feed = SnapshotFeed("tables", self._load_snapshot)

    def subscribe(self, on_snapshot, on_error=None):
        return self.feed.subscribe(on_snapshot, on_error)

    async def upsert_merge(self, table_id: int, fields: dict) -> None:
        values = _column_values(fields)
        await run_in_threadpool(self._write, table_id, values, False)

    async def replace(self, table_id: int, fields: dict) -> None:
        values = _column_values(fields)
        missing = {"status", "order", "total"} - values.keys()
        if missing:
            raise ValueError(f"replace() requires {sorted(missing)}")
        await run_in_threadpool(self._write, table_id, values, True)

    def _load_snapshot(self):
        try:
            with self._session_factory() as db:
                rows = db.query(DiningTable).order_by(DiningTable.table_id).all()
                return [Table.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise TransportError(f"Unable to load tables: {exc}") from exc

    def _write(self, table_id: int, values: dict, full: bool) -> None:
        try:
            changed = self._apply(table_id, values, full)
        except IntegrityError:
            # Another client created the row first; merge onto it instead
            logger.info(f"Table {table_id} created concurrently, retrying as update")
            try:
                changed = self._apply(table_id, values, full)
            except IntegrityError as exc:
                raise TransportError(f"Unable to write table {table_id}: {exc}") from exc

        if changed:
            self.feed.publish()

    def _apply(self, table_id: int, values: dict, full: bool) -> bool:
        with self._session_factory() as db:
            try:
                table = (
                    db.query(DiningTable)
                    .filter(DiningTable.table_id == table_id)
                    .with_for_update()
                    .first()
                )

                created = table is None
                if created:
                    table = DiningTable(
                        table_id=table_id,
                        status=TableStatus.CLOSED.value,
                        order=[],
                        total=Decimal("0.00"),
                    )
                    db.add(table)

                if not created and not values:
                    return False

                for key, value in values.items():
                    setattr(table, key, value)
                if full and "updated_by" not in values:
                    table.updated_by = None

                table.last_update = self._clock()
                db.commit()
                return True

            except IntegrityError:
                db.rollback()
                raise

            except SQLAlchemyError as exc:
                db.rollback()
                raise TransportError(f"Unable to write table {table_id}: {exc}") from exc


# =========================================================
# SALES
# =========================================================
class SqlSaleStore(SaleStore):
    def __init__(self, session_factory, clock=utc_now):
        self._session_factory = session_factory
        self._clock = clock
        self.feed = SnapshotFeed("sales", self._load_snapshot)

    def subscribe(self, on_snapshot, on_error=None):
        return self.feed.subscribe(on_snapshot, on_error)

    async def append(self, fields: dict) -> int:
        return await run_in_threadpool(self._append, fields)

    async def find(self, request_id: str):
        return await run_in_threadpool(self._find, request_id)

    def _find(self, request_id: str):
        try:
            with self._session_factory() as db:
                existing = self._find_existing(db, request_id)
                return Sale.model_validate(existing) if existing else None
        except SQLAlchemyError as exc:
            raise TransportError(f"Unable to look up request {request_id}: {exc}") from exc

    def _load_snapshot(self):
        try:
            with self._session_factory() as db:
                rows = db.query(SaleRecord).order_by(SaleRecord.id).all()
                return [Sale.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise TransportError(f"Unable to load sales: {exc}") from exc

    def _find_existing(self, db, request_id: str):
        return (
            db.query(SaleRecord)
            .filter(SaleRecord.request_id == request_id)
            .first()
        )

    def _append(self, fields: dict) -> int:
        request_id = fields["request_id"]

        with self._session_factory() as db:
            try:
                # IDEMPOTENCY CHECK (RETRIED CHECKOUT)
                existing = self._find_existing(db, request_id)
                if existing:
                    logger.info(f"Sale for request {request_id} already recorded as {existing.id}")
                    return existing.id

                now = self._clock()
                sale = SaleRecord(
                    table_id=fields["table_id"],
                    items=_serialize_lines(fields["items"]),
                    total=Decimal(fields["total"]),
                    timestamp=now,
                    date=_calendar_date(now),
                    request_id=request_id,
                    actor_id=fields.get("actor_id"),
                )
                db.add(sale)
                db.commit()
                db.refresh(sale)
                sale_id = sale.id

            except IntegrityError:
                db.rollback()
                existing = self._find_existing(db, request_id)
                if existing is None:
                    raise TransportError(f"Unable to record sale for request {request_id}")
                return existing.id

            except SQLAlchemyError as exc:
                db.rollback()
                raise TransportError(f"Unable to record sale: {exc}") from exc

        self.feed.publish()
        return sale_id
