"""
Chapa Payment Service
"""

import logging
import os
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from venue_ledger.utils.exceptions import GatewayTimeoutError, PaymentGatewayError

load_dotenv()

CHAPA_SECRET_KEY = os.getenv("CHAPA_SECRET_KEY", "")
CHAPA_BASE_URL = os.getenv("CHAPA_BASE_URL", "https://api.chapa.co/v1")

INITIALIZE_TIMEOUT = 15.0
VERIFY_TIMEOUT = 10.0
TRANSFER_TIMEOUT = 30.0

logger = logging.getLogger(__name__)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class ChapaService:
    """Service for interacting with Chapa API"""

    def __init__(self, secret_key: str = None, base_url: str = None):
        self.secret_key = secret_key if secret_key is not None else CHAPA_SECRET_KEY
        self.base_url = (base_url or CHAPA_BASE_URL).rstrip("/")

        if not self.secret_key:
            logger.warning("CHAPA_SECRET_KEY not configured")

    def _get_headers(self) -> Dict[str, str]:
        """Get authorization headers"""
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, timeout: float, payload: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Send one request to Chapa and return the decoded body

        Raises:
            GatewayTimeoutError: If Chapa does not answer in time
            PaymentGatewayError: On network errors, non-2xx answers or bad JSON
        """
        if not self.secret_key:
            raise PaymentGatewayError("Chapa secret key not configured")

        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient() as client:
                if method == "GET":
                    response = await client.get(
                        url, headers=self._get_headers(), timeout=timeout
                    )
                else:
                    response = await client.post(
                        url, json=payload, headers=self._get_headers(), timeout=timeout
                    )

                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Chapa timeout on {method} {path}: {str(e)}")
            raise GatewayTimeoutError("Payment service did not respond in time")
        except httpx.HTTPStatusError as e:
            message = self._provider_message(e.response)
            logger.error(
                f"Chapa rejected {method} {path} with {e.response.status_code}: {message}"
            )
            raise PaymentGatewayError(f"Payment provider rejected the request: {message}")
        except httpx.HTTPError as e:
            logger.error(f"Chapa HTTP error: {str(e)}", exc_info=True)
            raise PaymentGatewayError("Payment service temporarily unavailable")
        except ValueError as e:
            logger.error(f"Chapa returned an unreadable body for {path}: {str(e)}")
            raise PaymentGatewayError("Payment service returned an invalid response")

        if not isinstance(body, dict):
            logger.error(f"Chapa returned a non-object body for {path}: {body!r}")
            raise PaymentGatewayError("Payment service returned an invalid response")
        return body

    @staticmethod
    def _provider_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None
        if isinstance(message, dict):
            message = "; ".join(f"{k}: {v}" for k, v in message.items())
        return message or response.reason_phrase or "Unknown error"

    async def initialize_transaction(
        self,
        email: str,
        amount: Decimal,
        currency: str,
        reference: str,
        callback_url: str,
        return_url: str = None,
        first_name: str = None,
        last_name: str = None,
        mobile_money: bool = False,
    ) -> Dict[str, Any]:
        """
        Initialize a Chapa hosted checkout

        Args:
            email: Customer email
            amount: Amount in major currency units
            currency: ETB or USD
            reference: Unique transaction reference (Chapa tx_ref)
            callback_url: URL Chapa calls once the payment settles
            return_url: Optional URL the customer is sent back to
            first_name: Customer first name
            last_name: Customer last name
            mobile_money: Route the checkout to telebirr

        Returns:
            Dictionary with checkout_url and the raw provider response

        Raises:
            PaymentGatewayError: If Chapa API call fails
        """
        payload = {
            "amount": str(amount),
            "currency": currency,
            "email": email,
            "first_name": first_name or "Guest",
            "last_name": last_name or "User",
            "tx_ref": reference,
            "callback_url": callback_url,
            "customization[title]": "Deposit Transaction",
            "customization[description]": f"Deposit of {amount} {currency}",
        }

        if return_url:
            payload["return_url"] = return_url
        if mobile_money:
            payload["payment_method"] = "telebirr"

        data = await self._request(
            "POST", "/transaction/initialize", INITIALIZE_TIMEOUT, payload
        )

        details = data.get("data")
        checkout_url = details.get("checkout_url") if isinstance(details, dict) else None
        if data.get("status") != "success" or not checkout_url:
            error_msg = data.get("message", "Unknown error")
            logger.error(f"Chapa initialization failed for {reference}: {error_msg}")
            raise PaymentGatewayError(f"Payment initialization failed: {error_msg}")

        return {"checkout_url": checkout_url, "response": data}

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """
        Verify a transaction status

        Args:
            reference: Transaction reference

        Returns:
            Dictionary with status, amount, currency, transaction_id and the
            raw provider response

        Raises:
            PaymentGatewayError: If Chapa API call fails
        """
        data = await self._request(
            "GET", f"/transaction/verify/{reference}", VERIFY_TIMEOUT
        )

        details = data.get("data")
        if data.get("status") != "success" or not isinstance(details, dict):
            error_msg = data.get("message", "Unknown error")
            logger.error(f"Chapa verification failed for {reference}: {error_msg}")
            raise PaymentGatewayError(f"Payment verification failed: {error_msg}")

        return {
            "status": str(details.get("status", "")).lower(),
            "amount": _to_decimal(details.get("amount")),
            "currency": details.get("currency"),
            "transaction_id": details.get("transaction_id") or details.get("reference"),
            "response": data,
        }

    async def transfer(
        self,
        account_name: str,
        account_number: str,
        amount: Decimal,
        currency: str,
        reference: str,
        bank_code: str = None,
        mobile_money: bool = False,
    ) -> Dict[str, Any]:
        """
        Send a payout to a bank account or mobile money wallet

        Returns:
            Dictionary with status, message and the raw provider response.
            A non-success status is returned, not raised.

        Raises:
            PaymentGatewayError: If Chapa API call fails
        """
        payload = {
            "account_name": account_name,
            "account_number": account_number,
            "amount": str(amount),
            "currency": currency,
            "reference": reference,
        }

        if mobile_money:
            payload["beneficiary_phone"] = account_number
        else:
            payload["bank_code"] = bank_code

        data = await self._request("POST", "/transfers", TRANSFER_TIMEOUT, payload)

        return {
            "status": str(data.get("status", "")).lower(),
            "message": data.get("message", ""),
            "response": data,
        }


chapa_service = ChapaService()
