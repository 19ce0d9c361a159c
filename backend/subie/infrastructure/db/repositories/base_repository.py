"""
Base Repository for Subie

Generic async repository with the read/write operations shared by all
table-backed repositories.
"""

from typing import Any, TypeVar, Generic, List, Optional, Type, Union
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


# Type variable for generic repository
ModelType = TypeVar("ModelType", bound=SQLModel)


def to_uuid(value: Union[str, UUID, None]) -> Optional[UUID]:
    """
    Coerce an id coming from a path or a token into a UUID.

    Returns None for values that are not valid UUIDs, so callers can treat
    them the same way as ids that do not exist.
    """
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    @property
    def session(self) -> AsyncSession:
        """Get the current session."""
        return self._session

    async def get_by_id(self, id: Union[str, UUID]) -> Optional[ModelType]:
        """
        Get a single record by its primary key.

        Args:
            id: UUID primary key (string form accepted)

        Returns:
            Model instance or None if not found
        """
        key = to_uuid(id)
        if key is None:
            return None
        return await self._session.get(self._model, key)

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100
    ) -> List[ModelType]:
        """
        Get all records with pagination.
        """
        stmt = select(self._model).offset(skip).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def exists(self, id: Union[str, UUID]) -> bool:
        result = await self.get_by_id(id)
        return result is not None

    async def add(self, db_obj: ModelType) -> ModelType:
        """
        Persist a new model instance and reload server-side defaults.
        """
        self._session.add(db_obj)
        await self._session.flush()
        await self._session.refresh(db_obj)
        return db_obj

    async def count(self) -> int:
        """
        Get total count of records.
        """
        stmt = select(func.count()).select_from(self._model)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def count_by(self, column: Any) -> dict[str, int]:
        """
        Count records grouped by one column.

        Returns:
            Mapping of column value to row count
        """
        stmt = select(column, func.count()).group_by(column)
        result = await self._session.execute(stmt)
        return {str(value): count for value, count in result.all()}
