from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ncp_portal.config import settings


class Base(DeclarativeBase):
    pass


def create_engine_for(url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Async engine; SQLite needs check_same_thread off for the aiosqlite worker thread."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_async_engine(url, echo=echo, **kwargs)


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine_for(settings.database_url, echo=settings.database_echo)
async_session_maker = create_session_maker(engine)


async def init_db(bind: AsyncEngine = None) -> None:
    """Create missing tables."""
    import ncp_portal.models  # noqa: F401  registers tables on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
