"""
Repository Pattern for Database Operations
Provides clean data access layer
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_ledger.db.base_repository import BaseRepository
from venue_ledger.models.transaction_model import (
    Transaction,
    TransactionStatus,
    TransactionType,
)


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction operations"""

    async def get_by_reference(
        self, reference: str, for_update: bool = False
    ) -> Optional[Transaction]:
        """Get transaction by reference, optionally row-locked"""
        query = select(Transaction).where(Transaction.reference == reference)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_user_email(
        self, user_email: Optional[str], limit: int = 100, offset: int = 0
    ) -> List[Transaction]:
        """Get transactions newest first; all users when no email is given"""
        query = select(Transaction)
        if user_email is not None:
            query = query.where(Transaction.user_email == user_email)
        result = await self.db.execute(
            query.order_by(Transaction.created_at.desc()).limit(limit).offset(offset)
        )
        return result.scalars().all()

    async def get_stale_deposits(
        self, updated_before: datetime, limit: int = 100
    ) -> List[Transaction]:
        """Get deposits still awaiting confirmation"""
        result = await self.db.execute(
            select(Transaction)
            .where(
                and_(
                    Transaction.type == TransactionType.DEPOSIT,
                    Transaction.status.in_(
                        [TransactionStatus.INITIATED, TransactionStatus.PENDING]
                    ),
                    Transaction.updated_at < updated_before,
                )
            )
            .order_by(Transaction.updated_at.asc())
            .limit(limit)
        )
        return result.scalars().all()


def get_transaction_repository(db: AsyncSession) -> TransactionRepository:
    """Get TransactionRepository instance"""
    return TransactionRepository(Transaction, db)
