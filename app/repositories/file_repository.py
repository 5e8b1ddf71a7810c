"""Repository for File metadata records."""

from typing import Optional, List
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import File
from app.repositories.base import BaseRepository


class FileRepository(BaseRepository[File]):
    """Repository for accessing file metadata."""

    def __init__(self, session: AsyncSession):
        super().__init__(File, session)

    async def get_by_name(self, name: str) -> Optional[File]:
        """Get a file by its object key."""
        stmt = select(self.model).where(self.model.name == name)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_recent(self, limit: int = 50) -> List[File]:
        """Newest files first."""
        stmt = select(self.model).order_by(self.model.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def increment_views(self, id: str) -> int:
        """Add one view in a single UPDATE and return the new count (0 if no row)."""
        stmt = (
            update(self.model)
            .where(self.model.id == id)
            .values(views=self.model.views + 1)
            .returning(self.model.views)
        )
        result = await self.session.execute(stmt)
        views = result.scalar_one_or_none()
        return views or 0

    async def delete_by_name(self, name: str) -> bool:
        return await self.delete_where(self.model.name == name) > 0

    async def delete_all(self) -> int:
        return await self.delete_where()

    async def totals(self) -> dict:
        """Record count and summed views/sizes across all files."""
        stmt = select(
            func.count(self.model.id),
            func.coalesce(func.sum(self.model.views), 0),
            func.coalesce(func.sum(self.model.size), 0),
        )
        count, views, size = (await self.session.execute(stmt)).one()
        return {"count": count, "views": views, "size": size}
