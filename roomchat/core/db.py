from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from roomchat.core.config import settings
from roomchat.core.logger import get_logger

logger = get_logger(__name__)


Base = declarative_base()


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)

logger.info("Async SQLAlchemy engine created (echo=%s)", settings.DEBUG)


async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables() -> None:
    """
    Ensure every table registered on `Base` exists.
    """
    # register the ORM models on Base before create_all
    from roomchat.models import record  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
