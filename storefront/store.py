"""Thin data-access façade over the async SQLAlchemy session.

Every call is a single statement that is committed on its own; nothing spans
more than one call. Database failures are rolled back and re-raised as
:class:`~storefront.errors.DataAccessError` carrying the driver's message.
"""
from typing import Any, Dict, Iterable, List, Optional, Type

from fastapi import Depends
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import Base, get_session
from storefront.errors import ConflictError, DataAccessError


def error_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class Store:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fail(self, exc: SQLAlchemyError) -> DataAccessError:
        await self.session.rollback()
        if isinstance(exc, IntegrityError):
            return ConflictError(error=error_message(exc))
        return DataAccessError(error=error_message(exc))

    async def select(
        self,
        model: Type[Base],
        *criteria,
        order_by=None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Any]:
        stmt = select(model)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by.desc() if descending else order_by.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            result = await self.session.execute(stmt)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise await self._fail(e) from e

    async def select_one(self, model: Type[Base], *criteria) -> Optional[Any]:
        """Return the single matching row, or None. More than one match is an error."""
        stmt = select(model)
        if criteria:
            stmt = stmt.where(*criteria)
        try:
            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise await self._fail(e) from e

    async def insert(self, model: Type[Base], rows: Iterable[Dict[str, Any]]) -> List[Any]:
        objs = [model(**row) for row in rows]
        try:
            self.session.add_all(objs)
            await self.session.commit()
            for obj in objs:
                await self.session.refresh(obj)
            return objs
        except SQLAlchemyError as e:
            raise await self._fail(e) from e

    async def update(self, model: Type[Base], values: Dict[str, Any], *criteria) -> List[Any]:
        stmt = update(model).where(*criteria).values(**values).returning(model)
        try:
            result = await self.session.execute(stmt)
            rows = list(result.scalars().all())
            await self.session.commit()
            return rows
        except SQLAlchemyError as e:
            raise await self._fail(e) from e

    async def delete(self, model: Type[Base], *criteria) -> int:
        try:
            result = await self.session.execute(delete(model).where(*criteria))
            await self.session.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            raise await self._fail(e) from e


async def get_store(session: AsyncSession = Depends(get_session)) -> Store:
    return Store(session)
