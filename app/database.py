"""
Async SQLAlchemy engine, session factory and the request-scoped session.

  - engine: one async engine per process (aiosqlite locally, asyncpg in production)
  - AsyncSessionLocal: session factory shared by requests and the expiry sweep
  - Base: declarative base for the users and cards tables
  - get_db(): FastAPI dependency yielding one session per request

Transaction boundary:
  get_db commits when the route returns and also when it raises a
  BankCardsError, because a rejected request may already have persisted a
  lazy transition to EXPIRED. StorageError and unexpected exceptions roll
  back. The ledger commits a transfer itself while still holding the card
  locks, which leaves get_db's commit with nothing to do.
"""

import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.exceptions import BankCardsError, StorageError


logger = logging.getLogger(__name__)

# echo=True logs SQL in debug mode; card numbers only ever appear as ciphertext
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False keeps loaded cards usable after the ledger commits
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        return
    directory = Path(url.database).resolve().parent
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
        logger.info("Created database directory %s", directory)


async def get_db():
    """Yield a session and close the request's transaction (see module docstring)."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except StorageError:
            await session.rollback()
            raise
        except BankCardsError:
            await session.commit()
            raise
        except Exception:
            await session.rollback()
            raise
