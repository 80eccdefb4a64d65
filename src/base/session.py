from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.base.errors import StoreUnavailable


@asynccontextmanager
async def store_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Short-lived session; connection-level failures become StoreUnavailable."""
    try:
        async with session_factory() as session:
            yield session
    except (OperationalError, InterfaceError, OSError) as exc:
        raise StoreUnavailable(str(exc)) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StoreUnavailable(str(exc)) from exc
        raise
