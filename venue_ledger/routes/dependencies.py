"""
Per-request wiring of the transaction service
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from venue_ledger.db.ledger_store import get_ledger_store
from venue_ledger.db.session import get_db
from venue_ledger.services.chapa_service import chapa_service
from venue_ledger.services.transaction_service import TransactionService


def get_transaction_service(db: AsyncSession = Depends(get_db)) -> TransactionService:
    """Dependency to get a TransactionService bound to the request session"""
    return TransactionService(store=get_ledger_store(db), gateway=chapa_service)
