"""
Owner Model
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Numeric, String

from venue_ledger.db.session import Base


class Owner(Base):
    __tablename__ = "owners"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    cinema_name = Column(String, nullable=True)
    pending = Column(Boolean, default=True, nullable=False)

    # Legacy single-withdrawal fields
    has_withdrawn = Column(Boolean, default=False, nullable=False)
    total_balance = Column(Numeric(precision=15, scale=2), default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
