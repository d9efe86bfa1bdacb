from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tutor_orchestrator.core.settings import settings
from tutor_orchestrator.models.base import Base

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema() -> None:
    # Imported for its side effect of registering the tables on Base.metadata.
    from tutor_orchestrator.models import entities  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
