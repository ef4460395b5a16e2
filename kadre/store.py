"""Data-access capability shared by the scorer, the triage agents and the assistant.

Callers express filters as SQLAlchemy column expressions; the store owns
session lifetime so that every operation runs in its own short transaction.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from kadre import db

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


class CoachStore:
    def __init__(self, session_factory=None) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        factory = self._session_factory or db.async_session_factory
        async with factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def select(
        self,
        model: Type[ModelT],
        *where: Any,
        order_by: Optional[Any] = None,
        limit: Optional[int] = None,
    ) -> List[ModelT]:
        statement = select(model)
        if where:
            statement = statement.where(*where)
        if order_by is not None:
            statement = statement.order_by(order_by)
        if limit is not None:
            statement = statement.limit(limit)
        async with self.session() as session:
            return list((await session.exec(statement)).all())

    async def first(self, model: Type[ModelT], *where: Any, order_by: Optional[Any] = None) -> Optional[ModelT]:
        rows = await self.select(model, *where, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def insert(self, rows: Iterable[ModelT]) -> List[ModelT]:
        rows = list(rows)
        if not rows:
            return []
        async with self.session() as session:
            session.add_all(rows)
            await session.commit()
            for row in rows:
                await session.refresh(row)
        return rows

    async def update(self, model: Type[SQLModel], *where: Any, patch: Dict[str, Any]) -> int:
        if not where:
            raise ValueError("Refusing to update without a filter")
        statement = sa_update(model).where(*where).values(**patch)
        async with self.session() as session:
            result = await session.execute(statement)
            await session.commit()
            return int(result.rowcount or 0)

    async def upsert(
        self,
        model: Type[ModelT],
        values: Dict[str, Any],
        conflict_keys: Sequence[str],
    ) -> ModelT:
        """Insert ``values`` or overwrite the row sharing its ``conflict_keys``.

        A concurrent writer can insert the same key between our read and our
        write; the unique constraint then rejects the insert and the write is
        retried once, this time as an update of the committed row.
        """
        missing = [key for key in conflict_keys if key not in values]
        if missing:
            raise ValueError(f"Upsert values missing conflict keys: {', '.join(missing)}")
        criteria = [getattr(model, key) == values[key] for key in conflict_keys]
        try:
            return await self._write(model, values, criteria)
        except IntegrityError:
            logger.info("Upsert on %s lost a race for %s; retrying as update", model.__tablename__, conflict_keys)
            return await self._write(model, values, criteria)

    async def _existing(self, session: AsyncSession, model: Type[ModelT], criteria: List[Any]) -> Optional[ModelT]:
        return (await session.exec(select(model).where(*criteria))).first()

    async def _write(self, model: Type[ModelT], values: Dict[str, Any], criteria: List[Any]) -> ModelT:
        async with self.session() as session:
            record = await self._existing(session, model, criteria)
            if record:
                for key, value in values.items():
                    setattr(record, key, value)
            else:
                record = model(**values)
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record
