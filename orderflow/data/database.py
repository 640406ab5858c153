# orderflow/data/database.py
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from orderflow.utils.settings import DATABASE_URL

Base = declarative_base()


def build_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    engine = create_async_engine(url or DATABASE_URL, **kwargs)
    if engine.dialect.name == "sqlite":
        _serialize_sqlite_transactions(engine)
    return engine


def _serialize_sqlite_transactions(engine: AsyncEngine) -> None:
    """
    SQLite ignores FOR UPDATE, a driver sam nie wysyla BEGIN przed SELECT.
    BEGIN IMMEDIATE bierze blokade zapisu na starcie transakcji, wiec
    odczyt + warunek + zapis nie przeplataja sie miedzy sesjami.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # wylaczamy wlasne BEGIN drivera
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    # import modeli zeby zarejestrowaly sie w Base.metadata
    from orderflow.data import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
