import logging

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.middleware import install_query_counter

logger = logging.getLogger(__name__)

# Tests swap this engine for an in-memory SQLite one.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Deterministic constraint names so Alembic can drop/alter them later.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


async def get_db():
    """
    Request-scoped session.  This is the transaction boundary for every
    service call: services only flush, so a request either commits as a
    whole or is rolled back as a whole.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back request transaction")
            await session.rollback()
            raise
