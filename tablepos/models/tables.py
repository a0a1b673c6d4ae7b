# models/tables.py

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, JSON, Numeric, String
from sqlalchemy.sql import func

from tablepos.database import Base


class DiningTable(Base):
    __tablename__ = "dining_tables"

    table_id = Column(Integer, primary_key=True, autoincrement=False)

    status = Column(String(16), nullable=False, default="Closed")

    # List of order line dicts: {id, name, price, quantity}
    order = Column(JSON, nullable=False, default=list)

    total = Column(Numeric(10, 2), nullable=False, default=0)

    last_update = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_by = Column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("table_id >= 1", name="ck_table_id_positive"),
        CheckConstraint("total >= 0", name="ck_table_total_positive"),
    )
