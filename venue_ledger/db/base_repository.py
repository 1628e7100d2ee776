"""
Repository Pattern for Database Operations
Provides clean data access layer
"""

from typing import Generic, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Base repository with the write path shared by every model"""

    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    async def add(self, instance: T) -> T:
        """Persist an already built record"""
        self.db.add(instance)
        await self.db.flush()
        return instance
