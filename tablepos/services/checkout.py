# =========================================================
# CHECKOUT
#
# Sale first, then table reset. A failure between the two
# writes leaves a recorded sale and a table that still shows
# open; revenue is never lost. The reset is idempotent and
# the sale append is keyed by request_id, so both steps are
# safe to retry.
#
# Checkouts and resets of one table run one at a time. With
# a reader attached, the table is re-read once its lock is
# held, so a second checkout of an order that was already
# closed is rejected instead of recorded twice.
# =========================================================

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from tablepos.core.errors import PartialCheckoutFailure, TransportError, ValidationError
from tablepos.services.registry import check_order, check_table_id, closed_fields

logger = logging.getLogger("tablepos.checkout")


@dataclass(frozen=True)
class CheckoutResult:
    sale_id: int
    table_id: int
    total: Decimal
    request_id: str


def _line_keys(lines):
    return [(line.id, line.quantity) for line in lines]


class CheckoutTransaction:
    def __init__(self, table_store, sale_store, table_count: int = 10, actor_id: str | None = None,
                 reader=None, locks: dict | None = None):
        self._table_store = table_store
        self._sale_store = sale_store
        self.table_count = table_count
        self.actor_id = actor_id
        # table_id -> current Table, usually TableRegistry.find_table
        self._reader = reader
        # Shared by every bound copy so all actors queue on the same lock
        self._locks = locks if locks is not None else {}

    def bind(self, actor_id: str) -> "CheckoutTransaction":
        return CheckoutTransaction(
            self._table_store,
            self._sale_store,
            self.table_count,
            actor_id,
            reader=self._reader,
            locks=self._locks,
        )

    def _lock_for(self, table_id: int) -> asyncio.Lock:
        return self._locks.setdefault(table_id, asyncio.Lock())

    async def checkout(self, table_id: int, lines, total, request_id: str | None = None) -> CheckoutResult:
        async with self._lock_for(table_id):
            # IDEMPOTENCY CHECK (RETRIED CHECKOUT)
            if request_id:
                existing = await self._sale_store.find(request_id)
                if existing is not None:
                    return await self._resume(existing)

            lines = list(lines)
            if not lines:
                raise ValidationError("Cannot checkout an empty order.")
            check_table_id(table_id, self.table_count)
            total = check_order(lines, total)

            if self._reader is not None and not self._reader(table_id).is_open:
                raise ValidationError(f"Table {table_id} has no open order to checkout.")

            request_id = request_id or uuid4().hex

            # 1. Record the sale
            sale_id = await self._sale_store.append(
                {
                    "table_id": table_id,
                    "items": lines,
                    "total": total,
                    "request_id": request_id,
                    "actor_id": self.actor_id,
                }
            )
            logger.info(f"Sale {sale_id} recorded for table {table_id}: {total}")

            # 2. Clear the table
            await self._close(table_id, sale_id, request_id)

        return CheckoutResult(sale_id=sale_id, table_id=table_id, total=total, request_id=request_id)

    async def _resume(self, sale) -> CheckoutResult:
        logger.info(f"Checkout {sale.request_id} already recorded as sale {sale.id}")

        # Only clear the table if it still holds the order that was sold
        if self._reader is None or _line_keys(self._reader(sale.table_id).order) == _line_keys(sale.items):
            await self._close(sale.table_id, sale.id, sale.request_id)

        return CheckoutResult(
            sale_id=sale.id,
            table_id=sale.table_id,
            total=sale.total,
            request_id=sale.request_id,
        )

    async def _close(self, table_id: int, sale_id: int, request_id: str) -> None:
        try:
            await self._reset(table_id)
        except TransportError as exc:
            logger.error(f"Error during checkout of table {table_id}: {exc}")
            raise PartialCheckoutFailure(table_id, sale_id, request_id) from exc

    async def reset_table(self, table_id: int) -> None:
        check_table_id(table_id, self.table_count)
        async with self._lock_for(table_id):
            await self._reset(table_id)

    async def _reset(self, table_id: int) -> None:
        fields = closed_fields()
        fields["updated_by"] = self.actor_id
        await self._table_store.upsert_merge(table_id, fields)
