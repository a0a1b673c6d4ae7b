# tablepos/services/registry.py

import logging
from dataclasses import dataclass
from decimal import Decimal

from tablepos.core.errors import ValidationError
from tablepos.schemas.order import order_total
from tablepos.schemas.table import Table, TableStatus

logger = logging.getLogger("tablepos.tables")


@dataclass(frozen=True)
class SaveResult:
    table_id: int
    status: TableStatus
    total: Decimal
    items: int


def closed_fields() -> dict:
    return {"order": [], "total": Decimal("0.00"), "status": TableStatus.CLOSED}


def check_table_id(table_id: int, table_count: int) -> None:
    if not 1 <= table_id <= table_count:
        raise ValidationError(f"Table {table_id} does not exist (1-{table_count})")


def check_order(lines, total=None) -> Decimal:
    """Validate order lines and return their total.

    Raises ``ValidationError`` for zero quantities, repeated item ids, or a
    supplied ``total`` that disagrees with the lines.
    """
    seen = set()
    for line in lines:
        if line.quantity < 1:
            raise ValidationError(f"Quantity for {line.id} must be at least 1")
        if line.id in seen:
            raise ValidationError(f"Duplicate item {line.id} in order")
        seen.add(line.id)

    computed = order_total(lines)
    if total is not None and Decimal(total) != computed:
        raise ValidationError(f"Order total {total} does not match items ({computed})")
    return computed


class TableRegistry:
    """Read side of the tables collection plus the Save operation."""

    def __init__(self, reconciler, table_store, table_count: int = 10, actor_id: str | None = None):
        self._reconciler = reconciler
        self._store = table_store
        self.table_count = table_count
        self.actor_id = actor_id

    def bind(self, actor_id: str) -> "TableRegistry":
        return TableRegistry(self._reconciler, self._store, self.table_count, actor_id)

    # ---------- reads ----------

    def find_table(self, table_id: int) -> Table:
        for table in self._reconciler.tables:
            if table.table_id == table_id:
                return table
        return Table(table_id=table_id)

    def list_tables(self) -> list[Table]:
        known = {table.table_id: table for table in self._reconciler.tables}
        return [
            known.get(table_id) or Table(table_id=table_id)
            for table_id in range(1, self.table_count + 1)
        ]

    # ---------- initialization ----------

    async def initialize_tables(self) -> None:
        # Identity-only merge: existing tables keep their live order
        logger.info("Initializing tables...")
        for table_id in range(1, self.table_count + 1):
            await self._store.upsert_merge(table_id, {"table_id": table_id})
        logger.info("Tables initialized.")

    async def ensure_initialized(self) -> bool:
        if self._reconciler.tables:
            return False
        await self.initialize_tables()
        return True

    # ---------- save ----------

    async def save(self, table_id: int, lines, total=None) -> SaveResult:
        check_table_id(table_id, self.table_count)
        lines = list(lines)
        computed = check_order(lines, total)
        status = TableStatus.OPEN if lines else TableStatus.CLOSED

        await self._store.replace(
            table_id,
            {
                "order": lines,
                "total": computed,
                "status": status,
                "updated_by": self.actor_id,
            },
        )
        logger.info(f"Table {table_id} saved: {len(lines)} lines, total {computed}")

        return SaveResult(table_id=table_id, status=status, total=computed, items=len(lines))
