import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.ext.asyncio import AsyncSession
from billify.config.settings import settings

logger = logging.getLogger("uvicorn.error")


# Create async engine
engine = create_async_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, future=True)

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)


# Initialize database (create tables and check connection)
async def init_db(db_engine: AsyncEngine = engine, create_tables: bool = settings.CREATE_TABLES) -> bool:
    try:
        async with db_engine.begin() as conn:
            if create_tables:
                from billify.infrastructure.database.models import Base
                await conn.run_sync(Base.metadata.create_all)

            # Just check connection
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
