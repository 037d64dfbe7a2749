from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from config import settings


def _get_engine_kwargs(url: str, debug: bool) -> dict:
    """Return dialect-specific engine options for SQLite vs PostgreSQL."""
    kwargs = {"echo": debug}
    if url.startswith("sqlite"):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Turn on foreign keys and take over transaction control from the sqlite3 driver,
    so BEGIN/SAVEPOINT are emitted by SQLAlchemy and nested transactions behave.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, debug: bool = False) -> AsyncEngine:
    new_engine = create_async_engine(url, **_get_engine_kwargs(url, debug))
    if url.startswith("sqlite"):
        configure_sqlite(new_engine)
    return new_engine


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine(settings.database_url, settings.debug)

AsyncSessionLocal = build_sessionmaker(engine)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None):
    # Register every table on Base.metadata before create_all
    import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
