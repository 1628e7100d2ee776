def _error_example(description: str, code: str, message: str, status_code: int, errors=None):
    return {
        "description": description,
        "content": {
            "application/json": {
                "examples": {
                    code.lower(): {
                        "summary": description,
                        "value": {
                            "error": code,
                            "message": message,
                            "status_code": status_code,
                            "errors": errors or {},
                        },
                    }
                }
            }
        },
    }


def _success_example(description: str, message: str, data: dict):
    return {
        "description": description,
        "content": {
            "application/json": {
                "examples": {
                    "success": {
                        "summary": description,
                        "value": {"status": "success", "message": message, "data": data},
                    }
                }
            }
        },
    }


unauthorized_response = _error_example(
    "Unauthorized - Authentication Required",
    "UNAUTHORIZED",
    "Invalid or expired JWT token",
    401,
)

server_error_response = _error_example(
    "Internal Server Error",
    "SERVER_ERROR",
    "An internal error occurred. Please try again later.",
    500,
)

gateway_error_response = _error_example(
    "Bad Gateway - Payment Provider Unavailable",
    "GATEWAY_ERROR",
    "Payment service temporarily unavailable",
    502,
)

initiate_deposit_responses = {
    200: _success_example(
        "Deposit Initiated Successfully",
        "Deposit initiated successfully",
        {
            "checkout_url": "https://checkout.chapa.co/checkout/payment/abcd1234",
            "reference": "TX1",
            "status": "pending",
            "fee_amount": "3.00",
        },
    ),
    400: _error_example(
        "Bad Request - Invalid Deposit Data",
        "VALIDATION_ERROR",
        "Invalid deposit data provided",
        400,
        {"amount": ["Amount must be greater than zero"]},
    ),
    401: unauthorized_response,
    404: _error_example("User Not Found", "NOT_FOUND", "User not found", 404),
    409: _error_example(
        "Duplicate Transaction",
        "DUPLICATE_TRANSACTION",
        "This transaction reference already exists",
        409,
        {"reference": ["Reference has already been used"]},
    ),
    502: gateway_error_response,
}

deposit_callback_responses = {
    200: _success_example(
        "Callback Processed",
        "Callback processed",
        {"reference": "TX1", "status": "success", "credited": True, "balance": "100.00"},
    ),
    401: _error_example(
        "Unauthorized - Invalid Webhook Signature",
        "UNAUTHORIZED",
        "Invalid webhook signature",
        401,
    ),
    502: gateway_error_response,
}

get_transaction_responses = {
    200: _success_example(
        "Transaction Retrieved",
        "Transaction retrieved",
        {
            "transaction": {
                "reference": "TX1",
                "type": "deposit",
                "amount": "100.00",
                "currency": "ETB",
                "status": "success",
                "payment_status_history": [
                    {"status": "initiated", "timestamp": "2025-01-01T10:00:00+00:00", "detail": "Deposit initialization started"},
                    {"status": "pending", "timestamp": "2025-01-01T10:00:01+00:00", "detail": "Deposit initialized with Chapa"},
                    {"status": "success", "timestamp": "2025-01-01T10:03:12+00:00", "detail": "Chapa verification: success"},
                ],
            },
            "verified": True,
            "verification_error": None,
        },
    ),
    401: unauthorized_response,
    404: _error_example(
        "Transaction Not Found", "NOT_FOUND", "Transaction not found: TX9", 404
    ),
}

withdraw_responses = {
    200: _success_example(
        "Withdrawal Completed",
        "Withdrawal completed",
        {"success": True, "reference": "TX3", "new_balance": "150.00"},
    ),
    400: _error_example(
        "Insufficient Funds",
        "INSUFFICIENT_FUNDS",
        "Your balance is 50.00 ETB",
        400,
        {"amount": ["Amount exceeds available balance of 50.00"]},
    ),
    401: unauthorized_response,
    403: _error_example(
        "Cross-Account Withdrawal",
        "FORBIDDEN",
        "Cannot withdraw from another account",
        403,
    ),
    409: _error_example(
        "Duplicate Transaction",
        "DUPLICATE_TRANSACTION",
        "This transaction reference already exists",
        409,
    ),
    500: server_error_response,
    502: gateway_error_response,
}

get_balance_responses = {
    200: _success_example(
        "Balance Retrieved",
        "Balance retrieved",
        {"owner_email": "owner@example.com", "balance": "150.00"},
    ),
    401: unauthorized_response,
}
