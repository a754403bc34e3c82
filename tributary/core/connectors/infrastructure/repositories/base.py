import asyncio
from contextlib import asynccontextmanager
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

RowT = TypeVar("RowT")


def _session_lock(session: AsyncSession) -> asyncio.Lock:
    # One lock per session, shared by every repository bound to it
    lock = session.info.get("tributary_lock")
    if lock is None:
        lock = asyncio.Lock()
        session.info["tributary_lock"] = lock
    return lock


class SqlAlchemyRepository:
    """
    Shared plumbing for repositories backed by one AsyncSession.

    Sync activities fan out over a bounded pool while sharing the session, so
    every statement runs under the session's lock. Mutations commit
    immediately: the unit of persistence is the row, never the page.
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        self._lock = _session_lock(session)

    @asynccontextmanager
    async def _serialized(self):
        async with self._lock:
            yield self._session

    async def _scalars(self, stmt) -> list:
        async with self._serialized() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def _first(self, stmt):
        async with self._serialized() as session:
            result = await session.execute(stmt)
            return result.scalars().first()

    async def _add(self, row: RowT) -> RowT:
        async with self._serialized() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
        return row

    async def save(self, row: RowT) -> RowT:
        async with self._serialized() as session:
            session.add(row)
            await session.commit()
        return row

    async def delete(self, row: object) -> None:
        async with self._serialized() as session:
            await session.delete(row)
            await session.commit()
