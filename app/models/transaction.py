"""
Transaction - fulfillment record. payment_id is the primary key and the only
concurrency-control primitive: the row is inserted at most once and never updated.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String

from app.db.base import Base


class Transaction(Base):
    __tablename__ = "transactions"

    payment_id = Column(String, primary_key=True)
    order_id = Column(String, ForeignKey("orders.order_id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    content_ref = Column(String, nullable=False)
    verified = Column(Boolean, nullable=False, default=True)
    channel = Column(String, nullable=False)                  # client / webhook - who got here first
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
