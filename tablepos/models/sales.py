# models/sales.py

from sqlalchemy import Column, Index, Integer, DateTime, JSON, Numeric, String, UniqueConstraint
from sqlalchemy.sql import func

from tablepos.database import Base


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)

    # No foreign key: a sale is independent of the table it came from
    table_id = Column(Integer, nullable=False, index=True)

    # Snapshot of the order lines at checkout
    items = Column(JSON, nullable=False)

    total = Column(Numeric(10, 2), nullable=False)

    timestamp = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    # Calendar date (YYYY-MM-DD) of the timestamp
    date = Column(String(10), nullable=False)

    request_id = Column(String, nullable=False)

    actor_id = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_sales_table_timestamp", "table_id", "timestamp"),
        UniqueConstraint("request_id", name="uq_sales_request_id"),
    )
