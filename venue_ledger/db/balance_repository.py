"""
Repository Pattern for Database Operations
Provides clean data access layer
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_ledger.db.base_repository import BaseRepository
from venue_ledger.models.balance_model import Balance


class BalanceRepository(BaseRepository[Balance]):
    """Repository for owner Balance operations"""

    async def get_by_owner_email(
        self, owner_email: str, for_update: bool = False
    ) -> List[Balance]:
        """Get every balance record of an owner, oldest first"""
        query = (
            select(Balance)
            .where(Balance.owner_email == owner_email)
            .order_by(Balance.created_at.asc())
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().all()


def get_balance_repository(db: AsyncSession) -> BalanceRepository:
    """Get BalanceRepository instance"""
    return BalanceRepository(Balance, db)
