"""
Ledger Store - the persistence surface the transaction service depends on

The service only sees this interface; the SQLAlchemy implementation below is
wired in per request, and tests substitute an in-memory one.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_ledger.db.balance_repository import get_balance_repository
from venue_ledger.db.transaction_repository import get_transaction_repository
from venue_ledger.db.users_repository import get_owner_repository, get_user_repository
from venue_ledger.models.balance_model import Balance
from venue_ledger.models.owner_model import Owner
from venue_ledger.models.transaction_model import Transaction
from venue_ledger.models.user_model import User
from venue_ledger.utils.exceptions import DuplicateTransactionError

logger = logging.getLogger(__name__)


class LedgerStore(ABC):
    """Persistence operations used by the transaction service"""

    @abstractmethod
    def atomic(self):
        """
        Async context manager for one unit of work: everything written inside
        is committed on normal exit and rolled back on exception.
        """

    @abstractmethod
    async def get_user(self, email: str) -> Optional[User]: ...

    @abstractmethod
    async def get_owner(self, email: str, for_update: bool = False) -> Optional[Owner]: ...

    @abstractmethod
    async def get_transaction_by_reference(
        self, reference: str, for_update: bool = False
    ) -> Optional[Transaction]: ...

    @abstractmethod
    async def list_transactions(
        self, user_email: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[Transaction]: ...

    @abstractmethod
    async def list_stale_deposits(
        self, updated_before: datetime, limit: int = 100
    ) -> List[Transaction]: ...

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """Insert a transaction; raises DuplicateTransactionError on a reused reference"""

    @abstractmethod
    async def save(self, instance) -> None:
        """Write pending changes of a record loaded from this store"""

    @abstractmethod
    async def get_balances(
        self, owner_email: str, for_update: bool = False
    ) -> List[Balance]: ...

    @abstractmethod
    async def add_balance(self, balance: Balance) -> Balance: ...


class SQLAlchemyLedgerStore(LedgerStore):
    """LedgerStore backed by an AsyncSession"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.transactions = get_transaction_repository(db)
        self.balances = get_balance_repository(db)
        self.users = get_user_repository(db)
        self.owners = get_owner_repository(db)

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator["SQLAlchemyLedgerStore"]:
        try:
            yield self
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def get_user(self, email: str) -> Optional[User]:
        return await self.users.get_by_email(email)

    async def get_owner(self, email: str, for_update: bool = False) -> Optional[Owner]:
        return await self.owners.get_by_email(email, for_update=for_update)

    async def get_transaction_by_reference(
        self, reference: str, for_update: bool = False
    ) -> Optional[Transaction]:
        return await self.transactions.get_by_reference(reference, for_update=for_update)

    async def list_transactions(
        self, user_email: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[Transaction]:
        return await self.transactions.get_by_user_email(user_email, limit, offset)

    async def list_stale_deposits(
        self, updated_before: datetime, limit: int = 100
    ) -> List[Transaction]:
        return await self.transactions.get_stale_deposits(updated_before, limit)

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        try:
            return await self.transactions.add(transaction)
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                f"Unique constraint rejected transaction {transaction.reference}: {str(e)}"
            )
            raise DuplicateTransactionError(
                "This transaction reference already exists",
                errors={"reference": ["Reference has already been used"]},
            )

    async def save(self, instance) -> None:
        self.db.add(instance)
        await self.db.flush()

    async def get_balances(
        self, owner_email: str, for_update: bool = False
    ) -> List[Balance]:
        return await self.balances.get_by_owner_email(owner_email, for_update=for_update)

    async def add_balance(self, balance: Balance) -> Balance:
        return await self.balances.add(balance)


def get_ledger_store(db: AsyncSession) -> SQLAlchemyLedgerStore:
    """Get SQLAlchemyLedgerStore instance"""
    return SQLAlchemyLedgerStore(db)
