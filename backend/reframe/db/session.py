from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from reframe.config import get_settings


class Base(DeclarativeBase):
    pass


settings = get_settings()

if settings.database_url.startswith("sqlite"):
    # aiosqlite connections are not shared across event loops
    engine_options = {"poolclass": NullPool}
else:
    engine_options = {"pool_pre_ping": True, "pool_recycle": 3600}

async_engine = create_async_engine(settings.database_url, echo=False, **engine_options)

async_session_factory = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
