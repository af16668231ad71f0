"""
Base repository shared by the engine's repositories.

Repositories never commit: they add and flush, and the caller's unit of work
(``database.base.session_scope``) decides when the transaction ends.
"""
from typing import TypeVar, Generic, Optional, Type
from abc import ABC

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from database.base import Base

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Abstract base repository with primary-key access.

    Usage:
        class AffiliateRepository(BaseRepository[Affiliate]):
            model_class = Affiliate

            async def get_by_code(self, code: str):
                ...
    """

    model_class: Type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, entity_id: int) -> Optional[ModelType]:
        """
        Get entity by its primary key ID.

        Args:
            entity_id: Primary key ID

        Returns:
            Entity or None if not found
        """
        result = await self.session.execute(
            select(self.model_class).where(self.model_class.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_by_id_for_update(self, entity_id: int) -> Optional[ModelType]:
        """
        Get entity by ID with ``SELECT ... FOR UPDATE``.

        Taken before any read-modify-write of denormalized counters or a
        status change, so concurrent operations on the same row serialize.
        ``populate_existing`` refreshes an instance already in the session.
        SQLite ignores the lock clause.
        """
        result = await self.session.execute(
            select(self.model_class)
            .where(self.model_class.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def count(self) -> int:
        """Count all rows of the model."""
        result = await self.session.execute(
            select(func.count(self.model_class.id))
        )
        return result.scalar() or 0

    def add(self, entity: ModelType) -> None:
        """Stage a new entity; the caller flushes."""
        self.session.add(entity)
