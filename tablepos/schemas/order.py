# schemas/order.py

from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class OrderLine(BaseModel):
    """One menu item on an order. Never stored with quantity 0."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


def order_total(lines) -> Decimal:
    return sum((line.line_total for line in lines), Decimal("0.00"))


# ---------- Request bodies ----------

class OrderLineIn(BaseModel):
    item_id: str
    quantity: int = Field(..., ge=1, le=999)


class OrderSave(BaseModel):
    items: List[OrderLineIn]


class QuantityAdjust(BaseModel):
    item_id: str
    delta: int = Field(..., ge=-999, le=999)
