import logging
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from reviewdesk.settings.config import settings

logger = logging.getLogger(__name__)


def normalize_async_url(raw_url: str) -> str:
    # if someone provided a sync URL by mistake, upgrade it to async
    if raw_url.startswith("postgresql+psycopg2"):
        return raw_url.replace("postgresql+psycopg2", "postgresql+asyncpg", 1)
    if raw_url.startswith("postgresql+psycopg"):
        return raw_url.replace("postgresql+psycopg", "postgresql+asyncpg", 1)
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return raw_url


DATABASE_URL = normalize_async_url(settings.DATABASE_URL)

engine = create_async_engine(DATABASE_URL, echo=False, future=True)
async_session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
Base = declarative_base()


async def get_db():
    async with async_session_maker() as session:
        yield session


@asynccontextmanager
async def transaction(db: AsyncSession):
    """Commit everything done inside the block, or roll all of it back.

    Multi-step mutations (supersession, action + counter, comment + notification)
    run inside one of these so readers never see half of an operation.
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise


async def init_db():
    if settings.RUN_DB_CREATE_ALL:
        from reviewdesk import models  # noqa: F401  registers tables on Base

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("create_all finished for %s", engine.url.render_as_string(hide_password=True))
