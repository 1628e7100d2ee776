"""
Transaction Service - deposit, callback verification and withdrawal flows

This is the only code that mutates owner balances. A balance changes in the
same unit of work as the transaction record that justifies it, under the
owner's lock.
"""

import enum
import logging
import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from venue_ledger.db.ledger_store import LedgerStore
from venue_ledger.models.balance_model import Balance
from venue_ledger.models.transaction_model import (
    PaymentMethod,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.schemas.transaction_schemas import (
    CallbackResult,
    DepositRequest,
    DepositResponse,
    ReconcileResult,
    TransactionResponse,
    TransactionSnapshot,
    WithdrawalRequest,
    WithdrawalResponse,
)
from venue_ledger.services.chapa_service import ChapaService
from venue_ledger.utils.exceptions import (
    BalanceNotFoundError,
    DuplicateTransactionError,
    ForbiddenError,
    InconsistentStateError,
    InsufficientFundsError,
    OwnerNotFoundError,
    PaymentGatewayError,
    TransactionNotFoundError,
    ValidationError,
    WithdrawalNotAllowedError,
)
from venue_ledger.utils.locks import KeyedLock, owner_locks
from venue_ledger.utils.validators import (
    normalize_email,
    parse_amount,
    validate_deposit_request,
    validate_withdrawal_request,
)

load_dotenv()

logger = logging.getLogger(__name__)

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000").rstrip("/")
DEFAULT_CALLBACK_URL = f"{BASE_URL}/deposits/callback"
DEFAULT_RETURN_URL = f"{BASE_URL}/dashboard/finance?tab=transaction"

SERVICE_FEE_RATE = Decimal("0.03")
CENT = Decimal("0.01")


class WithdrawalPolicy(str, enum.Enum):
    # Any amount up to the aggregated balance, as often as the owner likes
    BALANCE = "balance"
    # Legacy: one withdrawal per owner, tracked on the owner profile
    SINGLE = "single"


WITHDRAWAL_POLICY = WithdrawalPolicy(os.getenv("WITHDRAWAL_POLICY", "balance").lower())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _total(balances: List[Balance]) -> Decimal:
    return sum((Decimal(b.total_amount or 0) for b in balances), Decimal("0"))


class TransactionService:
    """Coordinates the ledger store and the payment gateway"""

    def __init__(
        self,
        store: LedgerStore,
        gateway: ChapaService,
        locks: KeyedLock = owner_locks,
        withdrawal_policy: WithdrawalPolicy = WITHDRAWAL_POLICY,
    ):
        self.store = store
        self.gateway = gateway
        self.locks = locks
        self.withdrawal_policy = WithdrawalPolicy(withdrawal_policy)

    # Deposits

    async def initiate_deposit(
        self, request: DepositRequest, identity: Identity
    ) -> DepositResponse:
        """
        Record a deposit and open a Chapa checkout for it

        The transaction is committed as initiated before Chapa is called, then
        moved to pending (checkout opened) or failed (gateway error). The same
        record is updated in both cases.

        Raises:
            ValidationError: If any field is missing or malformed
            ForbiddenError: If a non-admin deposits for another email
            OwnerNotFoundError: If the email is not a known active user
            DuplicateTransactionError: If the reference was used before
            PaymentGatewayError: If Chapa could not open the checkout
        """
        request = request.model_copy(
            update={
                "email": normalize_email(request.email) or identity.email,
                "currency": (request.currency or "").upper() or None,
                "callback_url": request.callback_url or DEFAULT_CALLBACK_URL,
                "return_url": request.return_url or DEFAULT_RETURN_URL,
            }
        )
        validate_deposit_request(request)

        if request.email != identity.email and not identity.is_admin:
            raise ForbiddenError("Cannot deposit on behalf of another account")

        user = await self.store.get_user(request.email)
        if not user or not user.is_active:
            raise OwnerNotFoundError(
                "User not found", errors={"email": ["No active user with this email"]}
            )

        await self._ensure_unused_reference(request.reference)

        amount = parse_amount(request.amount)
        is_mobile_money = request.payment_method == PaymentMethod.MOBILE_MONEY
        transaction = Transaction(
            id=str(uuid.uuid4()),
            reference=request.reference,
            type=TransactionType.DEPOSIT,
            amount=amount,
            currency=request.currency,
            user_email=request.email,
            account_number=request.account_number,
            account_name=request.account_name,
            bank_code=None if is_mobile_money else request.bank_code,
            payment_method=request.payment_method,
            fee_amount=(amount * SERVICE_FEE_RATE).quantize(CENT, ROUND_HALF_UP),
            payment_status_history=[],
            created_at=_now(),
        )
        transaction.record_status(
            TransactionStatus.INITIATED, "Deposit initialization started"
        )

        async with self.store.atomic():
            await self.store.add_transaction(transaction)

        try:
            checkout = await self.gateway.initialize_transaction(
                email=request.email,
                amount=amount,
                currency=request.currency,
                reference=request.reference,
                callback_url=request.callback_url,
                return_url=request.return_url,
                first_name=user.first_name,
                last_name=user.last_name,
                mobile_money=is_mobile_money,
            )
        except PaymentGatewayError as e:
            logger.error(f"Deposit {request.reference} initialization failed: {e.message}")
            transaction.error_detail = e.message
            transaction.record_status(TransactionStatus.FAILED, e.message)
            async with self.store.atomic():
                await self.store.save(transaction)
            raise

        transaction.checkout_url = checkout["checkout_url"]
        transaction.gateway_response = checkout.get("response")
        transaction.record_status(
            TransactionStatus.PENDING, "Deposit initialized with Chapa"
        )
        async with self.store.atomic():
            await self.store.save(transaction)

        logger.info(
            f"Deposit {request.reference} of {amount} {request.currency} "
            f"initiated for {request.email}"
        )

        return DepositResponse(
            checkout_url=transaction.checkout_url,
            reference=transaction.reference,
            status=transaction.status.value,
            fee_amount=transaction.fee_amount,
        )

    async def handle_deposit_callback(
        self, reference: Optional[str], reported_status: Optional[str] = None
    ) -> CallbackResult:
        """
        Re-verify a deposit with Chapa and apply the outcome

        The reported status is only logged; Chapa's verify answer decides.
        The owner balance is credited when this call moves the deposit to
        success, so repeated callbacks credit once.

        Raises:
            ValidationError: If the reference is missing or not a deposit
            TransactionNotFoundError: If no transaction has this reference
            PaymentGatewayError: If verification failed; nothing is written
        """
        if not reference:
            raise ValidationError(
                "Missing transaction reference",
                errors={"reference": ["Missing transaction reference"]},
            )

        async with self.store.atomic():
            transaction = await self.store.get_transaction_by_reference(reference)
        if not transaction:
            raise TransactionNotFoundError(f"Transaction not found: {reference}")
        if transaction.type != TransactionType.DEPOSIT:
            raise ValidationError(
                f"Transaction {reference} is not a deposit",
                errors={"reference": ["Reference does not belong to a deposit"]},
            )

        if reported_status:
            logger.info(
                f"Callback for {reference} reported '{reported_status}', verifying with Chapa"
            )

        try:
            verification = await self.gateway.verify_transaction(reference)
        except PaymentGatewayError as e:
            logger.error(
                f"Verification of {reference} failed, status left at "
                f"'{transaction.status.value}': {e.message}"
            )
            raise

        owner_email = transaction.user_email
        credited = False
        balance = None

        async with self.locks.hold(owner_email):
            async with self.store.atomic():
                transaction = await self.store.get_transaction_by_reference(
                    reference, for_update=True
                )
                previous_status = transaction.status
                new_status, detail = self._resolve_verified_status(
                    transaction, verification
                )

                transaction.verification_response = verification.get("response")
                transaction.provider_transaction_id = verification.get("transaction_id")
                transaction.amount_confirmed = verification.get("amount")
                transaction.currency_confirmed = verification.get("currency")
                transaction.last_verified_at = _now()
                transaction.record_status(new_status, detail)
                await self.store.save(transaction)

                if (
                    new_status == TransactionStatus.SUCCESS
                    and previous_status != TransactionStatus.SUCCESS
                ):
                    balance = await self._credit(owner_email, transaction.amount)
                    credited = True

        if credited:
            logger.info(
                f"Credited {transaction.amount} to {owner_email} for deposit {reference}"
            )
        else:
            logger.info(f"Deposit {reference} verified as '{transaction.status.value}'")

        return CallbackResult(
            reference=reference,
            status=transaction.status.value,
            credited=credited,
            balance=balance,
        )

    def _resolve_verified_status(
        self, transaction: Transaction, verification: dict
    ) -> Tuple[TransactionStatus, str]:
        gateway_status = verification.get("status") or "unknown"

        if not transaction.awaits_verification:
            return (
                transaction.status,
                f"Chapa verification: {gateway_status} "
                f"(transaction already {transaction.status.value})",
            )

        if gateway_status == "success":
            mismatch = self._confirmation_mismatch(transaction, verification)
            if mismatch:
                logger.error(f"Deposit {transaction.reference} not credited: {mismatch}")
                return TransactionStatus.FAILED, f"Chapa verification: success, but {mismatch}"
            return TransactionStatus.SUCCESS, "Chapa verification: success"

        if gateway_status == "failed":
            return TransactionStatus.FAILED, "Chapa verification: failed"

        return TransactionStatus.PENDING, f"Chapa verification: {gateway_status}"

    @staticmethod
    def _confirmation_mismatch(transaction: Transaction, verification: dict) -> Optional[str]:
        amount = verification.get("amount")
        if amount is not None and Decimal(amount) != Decimal(transaction.amount):
            return f"amount mismatch (expected {transaction.amount}, got {amount})"

        currency = verification.get("currency")
        if currency and currency.upper() != transaction.currency.upper():
            return f"currency mismatch (expected {transaction.currency}, got {currency})"

        return None

    async def _credit(self, owner_email: str, amount: Decimal) -> Decimal:
        """Add to the owner's oldest balance record, creating one if needed"""
        balances = await self.store.get_balances(owner_email, for_update=True)

        if not balances:
            now = _now()
            await self.store.add_balance(
                Balance(
                    id=str(uuid.uuid4()),
                    owner_email=owner_email,
                    total_amount=amount,
                    created_at=now,
                    updated_at=now,
                )
            )
            return Decimal(amount)

        target = balances[0]
        target.total_amount = Decimal(target.total_amount or 0) + amount
        target.updated_at = _now()
        await self.store.save(target)
        return _total(balances)

    # Reads

    async def get_transaction(
        self, reference: str, identity: Identity
    ) -> TransactionSnapshot:
        """
        Get a transaction, re-verifying deposits that are not final yet

        Raises:
            TransactionNotFoundError: If missing or owned by someone else
        """
        async with self.store.atomic():
            transaction = await self.store.get_transaction_by_reference(reference)
        if not transaction or (
            transaction.user_email != identity.email and not identity.is_admin
        ):
            raise TransactionNotFoundError(f"Transaction not found: {reference}")

        if transaction.type == TransactionType.DEPOSIT and transaction.awaits_verification:
            try:
                await self.handle_deposit_callback(reference)
            except PaymentGatewayError as e:
                return TransactionSnapshot(
                    transaction=TransactionResponse.model_validate(transaction),
                    verified=False,
                    verification_error=e.message,
                )
            async with self.store.atomic():
                transaction = await self.store.get_transaction_by_reference(reference)

        return TransactionSnapshot(
            transaction=TransactionResponse.model_validate(transaction),
            verified=True,
        )

    async def list_transactions(
        self, identity: Identity, limit: int = 100, offset: int = 0, all_users: bool = False
    ) -> List[Transaction]:
        if all_users and not identity.is_admin:
            raise ForbiddenError("Only admins can list every transaction")
        user_email = None if all_users else identity.email
        return await self.store.list_transactions(user_email, limit, offset)

    async def get_balance(self, owner_email: str) -> Decimal:
        """Sum of every balance record of the owner"""
        balances = await self.store.get_balances(owner_email)
        return _total(balances)

    # Withdrawals

    async def withdraw(
        self, request: WithdrawalRequest, identity: Identity
    ) -> WithdrawalResponse:
        """
        Pay out part of the owner's balance through Chapa

        Funds are checked before the transfer and again, under row locks,
        when the debit is written. The debit and the completed transaction
        are committed together once Chapa confirms the payout.

        Raises:
            ValidationError: If any field is missing or malformed
            ForbiddenError: If the request targets another account
            DuplicateTransactionError: If the reference was used before
            BalanceNotFoundError: If the owner has no balance record
            InsufficientFundsError: If the amount exceeds the balance
            WithdrawalNotAllowedError: If the single withdrawal was used
            PaymentGatewayError: If Chapa failed or refused the payout
            InconsistentStateError: If the payout went out but the ledger
                write failed
        """
        request = request.model_copy(
            update={
                "currency": (request.currency or "").upper() or None,
                "user_email": normalize_email(request.user_email),
            }
        )
        validate_withdrawal_request(request)

        if request.user_email != identity.email:
            logger.warning(
                f"{identity.email} attempted a withdrawal for {request.user_email}"
            )
            raise ForbiddenError("Cannot withdraw from another account")

        owner_email = request.user_email
        amount = parse_amount(request.amount)

        async with self.locks.hold(owner_email):
            # No database transaction stays open across the payout
            async with self.store.atomic():
                await self._ensure_unused_reference(request.reference)
                balances = await self.store.get_balances(owner_email)
                owner = None
                if self.withdrawal_policy == WithdrawalPolicy.SINGLE:
                    owner = await self.store.get_owner(owner_email)

            if not balances:
                raise BalanceNotFoundError("Balance record not found for this user")

            available = _total(balances)
            if amount > available:
                logger.warning(
                    f"Withdrawal {request.reference} of {amount} refused for "
                    f"{owner_email}: balance {available}"
                )
                raise InsufficientFundsError(
                    f"Your balance is {available} {request.currency}",
                    errors={"amount": [f"Amount exceeds available balance of {available}"]},
                )

            if self.withdrawal_policy == WithdrawalPolicy.SINGLE:
                if not owner:
                    raise OwnerNotFoundError("Owner account does not exist")
                if owner.has_withdrawn:
                    raise WithdrawalNotAllowedError("Balance has already been withdrawn")

            payout = await self.gateway.transfer(
                account_name=request.account_name,
                account_number=request.account_number,
                amount=amount,
                currency=request.currency,
                reference=request.reference,
                bank_code=request.bank_code,
                mobile_money=request.payment_method == PaymentMethod.MOBILE_MONEY,
            )

            if payout.get("status") != "success":
                message = payout.get("message") or "Unknown error"
                logger.warning(f"Payout {request.reference} refused by Chapa: {message}")
                raise PaymentGatewayError(f"Payout failed: {message}")

            try:
                new_balance = await self._record_withdrawal(request, amount, payout)
            except Exception as e:
                logger.critical(
                    f"RECONCILIATION REQUIRED: payout {request.reference} of {amount} "
                    f"{request.currency} to {owner_email} was sent but the ledger "
                    f"write failed: {str(e)}",
                    exc_info=True,
                )
                raise InconsistentStateError(
                    "Payout was sent but could not be recorded; it has been flagged for reconciliation"
                ) from e

        logger.info(
            f"Withdrawal {request.reference} of {amount} {request.currency} "
            f"completed for {owner_email}, new balance {new_balance}"
        )

        return WithdrawalResponse(
            success=True, reference=request.reference, new_balance=new_balance
        )

    async def _record_withdrawal(
        self, request: WithdrawalRequest, amount: Decimal, payout: dict
    ) -> Decimal:
        owner_email = request.user_email

        async with self.store.atomic():
            balances = await self.store.get_balances(owner_email, for_update=True)
            available = _total(balances)
            if amount > available:
                raise InsufficientFundsError(
                    f"Balance changed to {available} before the debit was written"
                )

            remaining = amount
            now = _now()
            for balance in balances:
                if remaining <= 0:
                    break
                current = Decimal(balance.total_amount or 0)
                taken = min(current, remaining)
                if taken <= 0:
                    continue
                balance.total_amount = current - taken
                balance.updated_at = now
                remaining -= taken
                await self.store.save(balance)

            is_mobile_money = request.payment_method == PaymentMethod.MOBILE_MONEY
            transaction = Transaction(
                id=str(uuid.uuid4()),
                reference=request.reference,
                type=TransactionType.WITHDRAWAL,
                amount=amount,
                currency=request.currency,
                user_email=owner_email,
                account_number=request.account_number,
                account_name=request.account_name,
                bank_code=None if is_mobile_money else request.bank_code,
                payment_method=request.payment_method,
                gateway_response=payout.get("response"),
                payment_status_history=[],
                created_at=now,
            )
            transaction.record_status(
                TransactionStatus.COMPLETED,
                f"Payout confirmed by Chapa: {payout.get('message') or 'success'}",
            )
            await self.store.add_transaction(transaction)

            if self.withdrawal_policy == WithdrawalPolicy.SINGLE:
                owner = await self.store.get_owner(owner_email, for_update=True)
                owner.has_withdrawn = True
                owner.total_balance = Decimal(owner.total_balance or 0) - amount
                await self.store.save(owner)

        return available - amount

    async def _ensure_unused_reference(self, reference: str) -> None:
        if await self.store.get_transaction_by_reference(reference):
            logger.warning(f"Rejected duplicate transaction reference {reference}")
            raise DuplicateTransactionError(
                "This transaction reference already exists",
                errors={"reference": ["Reference has already been used"]},
            )

    # Recovery

    async def reconcile_stale_deposits(
        self, older_than_minutes: int = 30, limit: int = 100
    ) -> ReconcileResult:
        """
        Re-verify deposits stuck in initiated/pending

        Gateway errors are counted and the pass moves on to the next deposit.
        """
        cutoff = _now() - timedelta(minutes=older_than_minutes)
        async with self.store.atomic():
            stale = await self.store.list_stale_deposits(cutoff, limit)
        result = ReconcileResult()

        for transaction in stale:
            reference = transaction.reference
            result.checked += 1
            try:
                outcome = await self.handle_deposit_callback(reference)
            except PaymentGatewayError as e:
                result.errors += 1
                logger.warning(f"Reconciliation could not verify {reference}: {e.message}")
                continue

            if outcome.credited:
                result.credited += 1
            elif outcome.status == TransactionStatus.FAILED.value:
                result.failed += 1
            elif outcome.status == TransactionStatus.PENDING.value:
                result.still_pending += 1

        logger.info(
            f"Reconciliation pass: checked={result.checked} credited={result.credited} "
            f"failed={result.failed} pending={result.still_pending} errors={result.errors}"
        )
        return result
