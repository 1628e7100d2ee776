"""
Custom Error Classes for Ledger Operations

Each error carries the HTTP status and machine-readable code it is rendered
with, so routes can let them propagate to the application error handler.
"""

from typing import Dict, List, Optional


class LedgerServiceError(Exception):
    """Base exception for the ledger service"""

    status_code = 500
    code = "SERVER_ERROR"
    retryable = False

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class ValidationError(LedgerServiceError):
    """Raised when request fields are missing or malformed"""

    status_code = 400
    code = "VALIDATION_ERROR"


class ForbiddenError(LedgerServiceError):
    """Raised when the caller acts on another account"""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(LedgerServiceError):
    status_code = 404
    code = "NOT_FOUND"


class OwnerNotFoundError(NotFoundError):
    """Raised when the owner identity does not resolve to a user record"""


class TransactionNotFoundError(NotFoundError):
    """Raised when transaction is not found"""


class BalanceNotFoundError(NotFoundError):
    """Raised when the owner has no balance record"""


class DuplicateTransactionError(LedgerServiceError):
    """Raised when a reference has already been used"""

    status_code = 409
    code = "DUPLICATE_TRANSACTION"


class InsufficientFundsError(LedgerServiceError):
    """Raised when a withdrawal exceeds the available balance"""

    status_code = 400
    code = "INSUFFICIENT_FUNDS"


class WithdrawalNotAllowedError(LedgerServiceError):
    """Raised when the single-withdrawal allowance is used up"""

    status_code = 400
    code = "WITHDRAWAL_NOT_ALLOWED"


class PaymentGatewayError(LedgerServiceError):
    """Payment gateway unreachable or rejected the request"""

    status_code = 502
    code = "GATEWAY_ERROR"
    retryable = True


class GatewayTimeoutError(PaymentGatewayError):
    """Payment gateway did not answer within the timeout"""

    status_code = 504
    code = "GATEWAY_TIMEOUT"


class InconsistentStateError(LedgerServiceError):
    """A payout went out but the ledger write did not complete"""

    status_code = 500
    code = "INCONSISTENT_STATE"
