# schemas/sale.py

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel

from tablepos.schemas.order import OrderLine


class Sale(BaseModel):
    id: int | None = None
    table_id: int
    items: List[OrderLine] = []
    total: Decimal
    timestamp: datetime | None = None
    # Calendar date string (YYYY-MM-DD) derived from timestamp
    date: str | None = None
    request_id: str | None = None
    actor_id: str | None = None

    class Config:
        from_attributes = True


class CheckoutRequest(BaseModel):
    # Idempotency key; reuse it when retrying the same checkout
    request_id: str | None = None


class CheckoutResponse(BaseModel):
    sale_id: int
    table_id: int
    total: Decimal
    request_id: str
