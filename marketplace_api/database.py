"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

The database is the credential store for the auth subsystem. Each request
gets its own session; per-user reads and writes inside that session are the
only serialization point the service relies on.

Session lifecycle:
  The session commits on success and rolls back on unexpected exceptions.
  Domain errors (MarketplaceAPIError) still commit, because some flows write
  a compensating change before failing. Forgot-password, for example, clears
  the reset-token fields when the email cannot be delivered, and that clear
  must survive the 500 response.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from marketplace_api.config import settings
from marketplace_api.exceptions import MarketplaceAPIError


# echo=True in debug mode logs all SQL statements. Only password hashes and
# reset-token digests ever reach the database, so nothing secret is echoed.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False prevents lazy-load errors after commit in async context
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except MarketplaceAPIError:
            # Persist compensating writes made before the domain error was raised
            await session.commit()
            raise
        except Exception:
            await session.rollback()
            raise
