"""
Repository Pattern Implementation for the local read cache.

Architecture Decision: Why Repository Pattern?
Separates cache access from the services that reconcile server and offline
state. Services only see domain models; the repositories convert to and from
ORM rows and normalize timestamps to UTC (SQLite stores naive values).
"""

from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from timegrid.domain.models import TimeEntry, Project, Client, Tag
from timegrid.infra.db import TimeEntryModel, ProjectModel, ClientModel, TagModel, get_engine

DomainT = TypeVar("DomainT", bound=BaseModel)


def _to_utc(value: Any) -> Any:
    """Store aware datetimes as naive UTC"""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_utc(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CacheRepository(Generic[DomainT]):
    """
    Handles cache operations for one entity table.

    Converts between domain models (Pydantic) and ORM models (SQLAlchemy).
    """

    orm_model: Type = None
    domain_model: Type[DomainT] = None

    def __init__(self, session: Optional[AsyncSession] = None):
        self.session = session

    async def _get_session(self) -> AsyncSession:
        """Get session - either injected or create new one"""
        if self.session:
            return self.session
        engine = get_engine()
        return engine.get_session()

    def _columns(self, item: DomainT) -> Dict[str, Any]:
        names = self.orm_model.__table__.columns.keys()
        data = item.model_dump()
        return {name: _to_utc(data.get(name)) for name in names if name in data}

    def _to_domain(self, model) -> DomainT:
        names = self.orm_model.__table__.columns.keys()
        values = {name: _from_utc(getattr(model, name)) for name in names}
        return self.domain_model.model_validate(values)

    async def get_all(self) -> List[DomainT]:
        session = await self._get_session()
        async with session:
            result = await session.execute(select(self.orm_model))
            return [self._to_domain(m) for m in result.scalars().all()]

    async def get_by_id(self, record_id: str) -> Optional[DomainT]:
        session = await self._get_session()
        async with session:
            model = await session.get(self.orm_model, record_id)
            return self._to_domain(model) if model else None

    async def replace_all(self, items: List[DomainT]) -> None:
        """Replace the cached table with a fresh server snapshot"""
        session = await self._get_session()
        async with session:
            await session.execute(delete(self.orm_model))
            for item in items:
                if item.id is None:
                    continue
                await session.merge(self.orm_model(**self._columns(item)))
            await session.commit()

    async def upsert(self, item: DomainT) -> DomainT:
        """Insert or overwrite one cached record"""
        if item.id is None:
            raise ValueError("Cannot cache a record without an id")
        session = await self._get_session()
        async with session:
            await session.merge(self.orm_model(**self._columns(item)))
            await session.commit()
            return item

    async def patch(self, record_id: str, changes: Dict[str, Any]) -> Optional[DomainT]:
        """
        Apply partial changes to a cached record.

        Args:
            record_id: Cached record id
            changes: Field values, snake_case or camelCase

        Returns:
            The updated record, or None when it is not cached
        """
        current = await self.get_by_id(record_id)
        if current is None:
            return None
        by_alias = {field.alias or name: name for name, field in self.domain_model.model_fields.items()}
        normalized = {by_alias.get(key, key): value for key, value in changes.items()}
        merged = {**current.model_dump(), **normalized}
        return await self.upsert(self.domain_model.model_validate(merged))

    async def delete(self, record_id: str) -> None:
        session = await self._get_session()
        async with session:
            await session.execute(delete(self.orm_model).where(self.orm_model.id == record_id))
            await session.commit()

    async def delete_all(self) -> int:
        """Delete all cached rows. Returns count of deleted rows."""
        session = await self._get_session()
        async with session:
            result = await session.execute(delete(self.orm_model))
            await session.commit()
            return result.rowcount


class TimeEntryCacheRepository(CacheRepository[TimeEntry]):
    orm_model = TimeEntryModel
    domain_model = TimeEntry


class ProjectCacheRepository(CacheRepository[Project]):
    orm_model = ProjectModel
    domain_model = Project


class ClientCacheRepository(CacheRepository[Client]):
    orm_model = ClientModel
    domain_model = Client


class TagCacheRepository(CacheRepository[Tag]):
    orm_model = TagModel
    domain_model = Tag
