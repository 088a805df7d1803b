"""
Order - purchase intent, keyed by the gateway-issued order id.
Immutable after creation except status (created -> settled).
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from app.db.base import Base


ORDER_STATUS_CREATED = "created"
ORDER_STATUS_SETTLED = "settled"


class Order(Base):
    __tablename__ = "orders"

    order_id = Column(String, primary_key=True)               # id from gateway Orders API
    user_id = Column(String, nullable=False, index=True)
    content_ref = Column(String, nullable=False)              # canonical unlock key, propagated unchanged
    title = Column(String, nullable=True)
    amount = Column(Integer, nullable=False)                  # minor units (paise)
    currency = Column(String, nullable=False, default="INR")
    receipt = Column(String, nullable=True)
    status = Column(String, nullable=False, default=ORDER_STATUS_CREATED)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    settled_at = Column(DateTime(timezone=True), nullable=True)
