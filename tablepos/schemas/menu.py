# schemas/menu.py

from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class MenuItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    price: Decimal = Field(..., ge=0)


class MenuCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    items: List[MenuItem]
