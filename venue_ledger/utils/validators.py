"""
Field validation for deposit and withdrawal requests
"""

import re
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from venue_ledger.models.transaction_model import PaymentMethod
from venue_ledger.utils.exceptions import ValidationError

ALLOWED_CURRENCIES = ("ETB", "USD")

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
# Ethiopian MSISDN: country code 251, then a 9 or 7 prefixed subscriber number
MOBILE_MONEY_PATTERN = re.compile(r"^251[79]\d{8}$")
BANK_ACCOUNT_PATTERN = re.compile(r"^\d{6,20}$")

# Largest value a Numeric(15, 2) column holds
MAX_AMOUNT = Decimal("9999999999999.99")


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    return email.strip().lower() or None


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def is_valid_url(url: Optional[str]) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_amount(value: Any) -> Optional[Decimal]:
    """Return the amount as a Decimal, or None when it is not a usable number"""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


class FieldErrors:
    """Collects messages per field and raises them as one ValidationError"""

    def __init__(self):
        self._errors: Dict[str, List[str]] = defaultdict(list)

    def add(self, field: str, message: str):
        self._errors[field].append(message)

    def raise_if_any(self, message: str):
        if self._errors:
            raise ValidationError(message, errors=dict(self._errors))


def _check_amount(errors: FieldErrors, value: Any) -> None:
    amount = parse_amount(value)
    if amount is None:
        errors.add("amount", "Invalid or missing amount")
    elif amount <= 0:
        errors.add("amount", "Amount must be greater than zero")
    elif amount > MAX_AMOUNT:
        errors.add("amount", f"Amount cannot exceed {MAX_AMOUNT}")
    elif amount.as_tuple().exponent < -2:
        errors.add("amount", "Amount cannot have more than 2 decimal places")


def _check_account(errors: FieldErrors, request) -> None:
    method = request.payment_method
    if method is None:
        errors.add(
            "payment_method",
            f"Invalid payment method. Allowed: {', '.join(m.value for m in PaymentMethod)}",
        )

    account_number = (request.account_number or "").strip()
    if not account_number:
        errors.add("account_number", "Missing account number or phone number")
    elif method == PaymentMethod.MOBILE_MONEY and not MOBILE_MONEY_PATTERN.match(
        account_number
    ):
        errors.add(
            "account_number",
            "Mobile money account must be a phone number in the form 2519XXXXXXXX",
        )
    elif method == PaymentMethod.BANK and not BANK_ACCOUNT_PATTERN.match(
        account_number
    ):
        errors.add("account_number", "Bank account number must be 6-20 digits")

    if not (request.account_name or "").strip():
        errors.add("account_name", "Missing account name")

    if method == PaymentMethod.BANK and not request.bank_code:
        errors.add("bank_code", "Missing bank code for bank payment")


def _check_common(errors: FieldErrors, request, email_field: str) -> None:
    _check_amount(errors, request.amount)

    if request.currency not in ALLOWED_CURRENCIES:
        errors.add(
            "currency",
            f"Invalid currency. Allowed currencies: {', '.join(ALLOWED_CURRENCIES)}",
        )

    if not is_valid_email(getattr(request, email_field)):
        errors.add(email_field, "Invalid or missing email address")

    if not (request.reference or "").strip():
        errors.add("reference", "Missing transaction reference")

    _check_account(errors, request)


def validate_deposit_request(request) -> None:
    """
    Validate a deposit request

    Raises:
        ValidationError: with every failing field listed
    """
    errors = FieldErrors()
    _check_common(errors, request, "email")

    if not is_valid_url(request.callback_url):
        errors.add("callback_url", "Invalid or missing callback URL")

    if request.return_url and not is_valid_url(request.return_url):
        errors.add("return_url", "Invalid return URL")

    errors.raise_if_any("Invalid deposit data provided")


def validate_withdrawal_request(request) -> None:
    """
    Validate a withdrawal request

    Raises:
        ValidationError: with every failing field listed
    """
    errors = FieldErrors()
    _check_common(errors, request, "user_email")
    errors.raise_if_any("Invalid withdrawal data provided")
