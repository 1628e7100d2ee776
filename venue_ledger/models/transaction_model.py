"""
Transaction Model
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Numeric, String, Text
from sqlalchemy import Enum as SQLEnum

from venue_ledger.db.session import Base


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, enum.Enum):
    INITIATED = "initiated"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    COMPLETED = "completed"


class PaymentMethod(str, enum.Enum):
    BANK = "bank"
    MOBILE_MONEY = "mobile_money"


TERMINAL_STATUSES = {
    TransactionStatus.SUCCESS,
    TransactionStatus.FAILED,
    TransactionStatus.COMPLETED,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    reference = Column(String, unique=True, nullable=False, index=True)
    type = Column(SQLEnum(TransactionType), nullable=False)
    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String(3), nullable=False)
    user_email = Column(String, nullable=False, index=True)

    account_number = Column(String, nullable=True)
    account_name = Column(String, nullable=True)
    bank_code = Column(String, nullable=True)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=True)

    status = Column(
        SQLEnum(TransactionStatus), default=TransactionStatus.INITIATED, nullable=False
    )
    payment_status_history = Column(JSON, nullable=False, default=list)

    fee_amount = Column(Numeric(precision=15, scale=2), nullable=True)

    # Chapa specific
    checkout_url = Column(String, nullable=True)
    gateway_response = Column(JSON, nullable=True)
    verification_response = Column(JSON, nullable=True)
    provider_transaction_id = Column(String, nullable=True)
    amount_confirmed = Column(Numeric(precision=15, scale=2), nullable=True)
    currency_confirmed = Column(String(3), nullable=True)
    last_verified_at = Column(DateTime(timezone=True), nullable=True)
    error_detail = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def record_status(self, status: TransactionStatus, detail: str) -> dict:
        """
        Append a status entry and make it the current status.

        The history list is replaced rather than mutated so the JSON column
        is flagged dirty and earlier entries are carried over untouched.
        """
        now = utcnow()
        entry = {
            "status": TransactionStatus(status).value,
            "timestamp": now.isoformat(),
            "detail": detail,
        }
        self.payment_status_history = list(self.payment_status_history or []) + [entry]
        self.status = TransactionStatus(status)
        self.updated_at = now
        return entry

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def awaits_verification(self) -> bool:
        """
        True while a gateway verification may still change the status.

        A deposit that failed at initialization and was never verified stays
        open: the checkout may have been created and paid despite the error.
        """
        if not self.is_terminal:
            return True
        return (
            self.type == TransactionType.DEPOSIT
            and self.status == TransactionStatus.FAILED
            and self.last_verified_at is None
        )
