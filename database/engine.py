import logging

from sqlalchemy import BigInteger, Integer, event, false
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Session, ORMExecuteState, with_loader_criteria

from core.config import settings
from database.mixins import SoftDeleteMixin

logger = logging.getLogger(__name__)

# BIGINT on postgres, INTEGER on sqlite so autoincrement keeps working in tests
IdType = BigInteger().with_variant(Integer, "sqlite")


def _engine_options(url: str) -> dict:
    options = {"echo": settings.database_echo}
    if url.startswith("postgresql"):
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        options["pool_pre_ping"] = True
    return options


db_engine = create_async_engine(
    settings.database_url, **_engine_options(settings.database_url)
)

# Create async session maker to be used throughout the application
AsyncSessionLocal = async_sessionmaker(
    db_engine, class_=AsyncSession, expire_on_commit=False
)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


@event.listens_for(Session, "do_orm_execute")
def _exclude_soft_deleted(execute_state: ORMExecuteState) -> None:
    """Hide soft-deleted rows from every ORM select.

    Pass ``execution_options(include_deleted=True)`` on a statement (or a
    session.execute call) to see them.
    """
    if (
        not execute_state.is_select
        or execute_state.is_column_load
        or execute_state.is_relationship_load
        or execute_state.execution_options.get("include_deleted", False)
    ):
        return

    execute_state.statement = execute_state.statement.options(
        with_loader_criteria(
            SoftDeleteMixin,
            lambda cls: cls.is_deleted == false(),
            include_aliases=True,
        )
    )


# Dependency to get DB session
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def init_db():
    """Create all tables. Migrations are managed outside the app."""
    import database.models  # noqa: F401  registers every mapper on Base.metadata

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


# Function to close database connections
async def close_db():
    """Close database engine and connections."""
    await db_engine.dispose()
