"""
Pydantic Schemas for Request/Response Validation

Request fields are optional at the schema level so that missing values are
reported per field by the ledger validators instead of failing parsing.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from venue_ledger.models.transaction_model import PaymentMethod


def _normalize_payment_method(value):
    # The mobile app still posts the provider name
    if isinstance(value, str) and value.lower() == "telebirr":
        return PaymentMethod.MOBILE_MONEY.value
    return value


class DepositRequest(BaseModel):
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    email: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    bank_code: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    reference: Optional[str] = None
    callback_url: Optional[str] = None
    return_url: Optional[str] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalize_payment_method(cls, v):
        return _normalize_payment_method(v)


class DepositResponse(BaseModel):
    checkout_url: str
    reference: str
    status: str
    fee_amount: Decimal


class DepositCallbackRequest(BaseModel):
    """Body posted by Chapa or by a client asking for re-verification"""

    reference: Optional[str] = None
    tx_ref: Optional[str] = None
    trx_ref: Optional[str] = None
    status: Optional[str] = None
    reportedStatus: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    def resolved_reference(self) -> Optional[str]:
        return self.reference or self.tx_ref or self.trx_ref

    def resolved_status(self) -> Optional[str]:
        return self.reportedStatus or self.status


class CallbackResult(BaseModel):
    reference: str
    status: str
    credited: bool
    balance: Optional[Decimal] = None


class WithdrawalRequest(BaseModel):
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    bank_code: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    reference: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalize_payment_method(cls, v):
        return _normalize_payment_method(v)


class WithdrawalResponse(BaseModel):
    success: bool
    reference: str
    new_balance: Decimal


class BalanceResponse(BaseModel):
    owner_email: str
    balance: Decimal


class TransactionResponse(BaseModel):
    id: str
    reference: str
    type: str
    amount: Decimal
    currency: str
    user_email: str
    status: str
    payment_method: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    bank_code: Optional[str] = None
    fee_amount: Optional[Decimal] = None
    checkout_url: Optional[str] = None
    provider_transaction_id: Optional[str] = None
    payment_status_history: List[Dict[str, Any]] = []
    last_verified_at: Optional[datetime] = None
    error_detail: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("type", "status", "payment_method", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class TransactionSnapshot(BaseModel):
    transaction: TransactionResponse
    verified: bool
    verification_error: Optional[str] = None


class ReconcileRequest(BaseModel):
    older_than_minutes: int = Field(default=30, ge=0)
    limit: int = Field(default=100, gt=0, le=1000)


class ReconcileResult(BaseModel):
    checked: int = 0
    credited: int = 0
    failed: int = 0
    still_pending: int = 0
    errors: int = 0
