# schemas/report.py

import enum
from decimal import Decimal
from typing import List

from pydantic import BaseModel


class ReportMode(str, enum.Enum):
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


class ReportRow(BaseModel):
    bucket_key: str
    label: str
    sales: Decimal


class SalesReport(BaseModel):
    mode: ReportMode
    rows: List[ReportRow]
    total_sales: Decimal
    stale: bool = False
