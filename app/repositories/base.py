"""Generic async repository over one SQLAlchemy model."""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Primary-key lookup, insert and bulk delete.

    Repositories never commit; the caller owns the transaction.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, id: Any) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def create(self, **kwargs) -> ModelType:
        """Insert a row and reload it so server defaults are populated."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete_where(self, *criteria) -> int:
        """Delete matching rows (all rows when no criteria) and return the count."""
        result = await self.session.execute(delete(self.model).where(*criteria))
        return result.rowcount
