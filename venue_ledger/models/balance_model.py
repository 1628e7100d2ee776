"""
Balance Model
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String

from venue_ledger.db.session import Base


class Balance(Base):
    __tablename__ = "owner_amounts"
    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_owner_amounts_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_email = Column(String, nullable=False, index=True)
    total_amount = Column(Numeric(precision=15, scale=2), default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
