import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient
from httpx import Request

from venue_ledger.db.ledger_store import LedgerStore
from venue_ledger.models.balance_model import Balance
from venue_ledger.models.owner_model import Owner
from venue_ledger.models.transaction_model import (
    Transaction,
    TransactionStatus,
    TransactionType,
)
from venue_ledger.models.user_model import User, UserRole
from venue_ledger.schemas.auth_schemas import Identity
from venue_ledger.schemas.transaction_schemas import DepositRequest, WithdrawalRequest
from venue_ledger.services.chapa_service import ChapaService
from venue_ledger.services.transaction_service import TransactionService
from venue_ledger.utils.exceptions import DuplicateTransactionError
from venue_ledger.utils.locks import KeyedLock

OWNER_EMAIL = "owner@example.com"
OTHER_OWNER_EMAIL = "other@example.com"
ADMIN_EMAIL = "admin@example.com"


class InMemoryLedgerStore(LedgerStore):
    """LedgerStore kept in dictionaries, with rollback of in-place edits"""

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.owners: Dict[str, Owner] = {}
        self.transactions: Dict[str, Transaction] = {}
        self.balances: List[Balance] = []
        self.fail_on_add_transaction: Optional[Exception] = None
        self.commits = 0
        self.rollbacks = 0

    def _snapshot(self):
        return {
            "transactions": dict(self.transactions),
            "balances": list(self.balances),
            "amounts": [(b, b.total_amount) for b in self.balances],
            "txn_state": [
                (t, t.status, t.payment_status_history)
                for t in self.transactions.values()
            ],
            "owners": [
                (o, o.has_withdrawn, o.total_balance) for o in self.owners.values()
            ],
        }

    def _restore(self, snapshot):
        self.transactions = snapshot["transactions"]
        self.balances = snapshot["balances"]
        for balance, amount in snapshot["amounts"]:
            balance.total_amount = amount
        for transaction, status, history in snapshot["txn_state"]:
            transaction.status = status
            transaction.payment_status_history = history
        for owner, has_withdrawn, total_balance in snapshot["owners"]:
            owner.has_withdrawn = has_withdrawn
            owner.total_balance = total_balance

    @asynccontextmanager
    async def atomic(self):
        snapshot = self._snapshot()
        try:
            yield self
            self.commits += 1
        except Exception:
            self._restore(snapshot)
            self.rollbacks += 1
            raise

    async def get_user(self, email):
        return self.users.get(email)

    async def get_owner(self, email, for_update=False):
        return self.owners.get(email)

    async def get_transaction_by_reference(self, reference, for_update=False):
        return self.transactions.get(reference)

    async def list_transactions(self, user_email=None, limit=100, offset=0):
        rows = [
            t
            for t in self.transactions.values()
            if user_email is None or t.user_email == user_email
        ]
        rows.sort(key=lambda t: t.created_at, reverse=True)
        return rows[offset : offset + limit]

    async def list_stale_deposits(self, updated_before, limit=100):
        rows = [
            t
            for t in self.transactions.values()
            if t.type == TransactionType.DEPOSIT
            and t.status in (TransactionStatus.INITIATED, TransactionStatus.PENDING)
            and t.updated_at < updated_before
        ]
        return rows[:limit]

    async def add_transaction(self, transaction):
        if self.fail_on_add_transaction is not None:
            raise self.fail_on_add_transaction
        if transaction.reference in self.transactions:
            raise DuplicateTransactionError("This transaction reference already exists")
        self.transactions[transaction.reference] = transaction
        return transaction

    async def save(self, instance):
        return None

    async def get_balances(self, owner_email, for_update=False):
        return [b for b in self.balances if b.owner_email == owner_email]

    async def add_balance(self, balance):
        self.balances.append(balance)
        return balance

    # Test helpers

    def seed_balance(self, owner_email: str, amount) -> Balance:
        now = datetime.now(timezone.utc)
        balance = Balance(
            id=str(uuid.uuid4()),
            owner_email=owner_email,
            total_amount=Decimal(str(amount)),
            created_at=now,
            updated_at=now,
        )
        self.balances.append(balance)
        return balance

    def balance_of(self, owner_email: str) -> Decimal:
        return sum(
            (Decimal(b.total_amount) for b in self.balances if b.owner_email == owner_email),
            Decimal("0"),
        )


@pytest.fixture
def store():
    """In-memory ledger with one active owner"""
    ledger = InMemoryLedgerStore()
    for email in (OWNER_EMAIL, OTHER_OWNER_EMAIL):
        ledger.users[email] = User(
            id=str(uuid.uuid4()),
            email=email,
            first_name="Abebe",
            last_name="Kebede",
            role=UserRole.OWNER,
            is_active=True,
        )
    return ledger


@pytest.fixture
def verification():
    """Build a normalized verify_transaction result"""

    def _make(status="success", amount="100", currency="ETB"):
        return {
            "status": status,
            "amount": Decimal(amount) if amount is not None else None,
            "currency": currency,
            "transaction_id": "APq8XmNGt7wF",
            "response": {"status": "success", "data": {"status": status}},
        }

    return _make


@pytest.fixture
def gateway(verification):
    """Chapa client double answering success by default"""
    chapa = AsyncMock(spec=ChapaService)
    chapa.initialize_transaction.return_value = {
        "checkout_url": "https://checkout.chapa.co/checkout/payment/abc123",
        "response": {"status": "success", "message": "Hosted Link"},
    }
    chapa.verify_transaction.return_value = verification()
    chapa.transfer.return_value = {
        "status": "success",
        "message": "Transfer Queued Successfully",
        "response": {"status": "success", "message": "Transfer Queued Successfully"},
    }
    return chapa


@pytest.fixture
def service(store, gateway):
    return TransactionService(store=store, gateway=gateway, locks=KeyedLock())


@pytest.fixture
def owner_identity():
    return Identity(email=OWNER_EMAIL, role=UserRole.OWNER)


@pytest.fixture
def admin_identity():
    return Identity(email=ADMIN_EMAIL, role=UserRole.ADMIN)


@pytest.fixture
def deposit_request():
    def _make(**overrides):
        data = {
            "amount": Decimal("100"),
            "currency": "ETB",
            "email": OWNER_EMAIL,
            "account_number": "1000123456789",
            "account_name": "Abebe Kebede",
            "bank_code": "CBE",
            "payment_method": "bank",
            "reference": "TX1",
        }
        data.update(overrides)
        return DepositRequest(**data)

    return _make


@pytest.fixture
def withdrawal_request():
    def _make(**overrides):
        data = {
            "amount": Decimal("50"),
            "currency": "ETB",
            "user_email": OWNER_EMAIL,
            "account_number": "1000123456789",
            "account_name": "Abebe Kebede",
            "bank_code": "CBE",
            "payment_method": "bank",
            "reference": "TX3",
        }
        data.update(overrides)
        return WithdrawalRequest(**data)

    return _make


@pytest.fixture
def client(service):
    """Create a test client wired to the in-memory ledger"""
    from venue_ledger.main import app
    from venue_ledger.routes.dependencies import get_transaction_service

    app.dependency_overrides[get_transaction_service] = lambda: service

    with patch("venue_ledger.main.init_db", AsyncMock()), patch(
        "venue_ledger.main.close_db", AsyncMock()
    ):
        with TestClient(app) as test_client:
            yield test_client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer headers for a given identity"""
    from venue_ledger.utils.security import create_jwt_token

    def _make(email=OWNER_EMAIL, role="owner"):
        return {"Authorization": f"Bearer {create_jwt_token(email, role)}"}

    return _make


@pytest.fixture
def mock_httpx_response():
    """Helper to create properly mocked httpx Response objects"""

    def _create_response(status_code, json_data=None):
        from httpx import Response

        response = Response(status_code, json=json_data)
        # Set the request attribute to avoid raise_for_status error
        response._request = Request("GET", "https://api.chapa.co/v1")
        return response

    return _create_response


@pytest.fixture
def mock_response():
    """Plain Mock standing in for a successful httpx response"""

    def _make(json_data):
        response = Mock()
        response.json.return_value = json_data
        response.raise_for_status = Mock()
        return response

    return _make
