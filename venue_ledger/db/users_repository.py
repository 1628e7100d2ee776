"""
Repository Pattern for Database Operations
Provides clean data access layer
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_ledger.db.base_repository import BaseRepository
from venue_ledger.models.owner_model import Owner
from venue_ledger.models.user_model import User


class UserRepository(BaseRepository[User]):
    """Repository for User operations"""

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        query = select(User).where(func.lower(User.email) == email.lower())
        result = await self.db.execute(query)
        return result.scalar_one_or_none()


class OwnerRepository(BaseRepository[Owner]):
    """Repository for venue Owner operations"""

    async def get_by_email(self, email: str, for_update: bool = False) -> Optional[Owner]:
        """Get owner profile by email"""
        query = select(Owner).where(func.lower(Owner.email) == email.lower())
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()


def get_user_repository(db: AsyncSession) -> UserRepository:
    """Get UserRepository instance"""
    return UserRepository(User, db)


def get_owner_repository(db: AsyncSession) -> OwnerRepository:
    """Get OwnerRepository instance"""
    return OwnerRepository(Owner, db)
