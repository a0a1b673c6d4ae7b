# schemas/table.py

import enum
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel

from tablepos.schemas.order import OrderLine


class TableStatus(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"


class Table(BaseModel):
    table_id: int
    status: TableStatus = TableStatus.CLOSED
    order: List[OrderLine] = []
    total: Decimal = Decimal("0.00")
    last_update: datetime | None = None
    updated_by: str | None = None

    class Config:
        from_attributes = True

    @property
    def is_open(self) -> bool:
        return self.status == TableStatus.OPEN


class TableListResponse(BaseModel):
    tables: List[Table]
    stale: bool = False


class SaveResponse(BaseModel):
    table_id: int
    status: TableStatus
    total: Decimal
    items: int
