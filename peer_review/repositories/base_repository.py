"""
Base repository class with common CRUD operations.
"""
from typing import TypeVar, Generic, Optional, List, Type, Iterable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, update, func
from peer_review.database.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class providing common CRUD operations.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, **kwargs) -> ModelType:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.commit()
        await self.session.refresh(instance)
        return instance

    async def create_many(self, rows: Iterable[dict]) -> List[ModelType]:
        """Insert several records in a single transaction."""
        instances = [self.model(**row) for row in rows]
        if not instances:
            return []
        self.session.add_all(instances)
        await self.session.commit()
        return instances

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """Get a record by ID."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_by_ids(self, ids: Iterable[int]) -> List[ModelType]:
        """Get all records whose ID is in ``ids``."""
        ids = list(ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(self.model).where(self.model.id.in_(ids)).order_by(self.model.id)
        )
        return result.scalars().all()

    async def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[ModelType]:
        """Get all records with optional pagination."""
        query = select(self.model).order_by(self.model.id).offset(offset)
        if limit:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """Update a record by ID."""
        await self.session.execute(
            update(self.model).where(self.model.id == id).values(**kwargs)
        )
        await self.session.commit()
        return await self.get_by_id(id)

    async def delete(self, id: int) -> bool:
        """Delete a record by ID."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def exists(self, **kwargs) -> bool:
        """Check if a record exists with given criteria."""
        query = select(self.model.id)
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)
        result = await self.session.execute(query.limit(1))
        return result.first() is not None

    async def count(self, **kwargs) -> int:
        """Count records matching given criteria."""
        query = select(func.count(self.model.id))
        for key, value in kwargs.items():
            query = query.where(getattr(self.model, key) == value)
        result = await self.session.execute(query)
        return result.scalar()
