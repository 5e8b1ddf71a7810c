"""Database session management."""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from app.core.config import settings
from app.db.base import Base

# SQLAlchemy uses sqlite+aiosqlite for async SQLite
database_url = f"sqlite+aiosqlite:///{settings.DATABASE_PATH}"


engine = create_async_engine(
    database_url,
    echo=settings.is_debug_mode,
    future=True,
    # SQLite specific args for concurrency
    connect_args={"check_same_thread": False}
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create tables that do not exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session_factory() -> async_sessionmaker:
    """Dependency returning the session factory.

    Services open their own short-lived sessions, including background tasks
    that run after the response has been sent.
    """
    return AsyncSessionLocal
