"""
Entitlement - monotonic grant of (user_id, content_ref). Rows are only inserted.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String

from app.db.base import Base


class Entitlement(Base):
    __tablename__ = "entitlements"

    user_id = Column(String, primary_key=True)
    content_ref = Column(String, primary_key=True)
    granted = Column(Boolean, nullable=False, default=True)
    payment_id = Column(String, nullable=True)                # transaction that granted it first
    granted_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
