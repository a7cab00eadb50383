from __future__ import annotations

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from taskcal.config import SETTINGS

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        sqlite_engine = create_engine(database_url, **kwargs)
        event.listen(sqlite_engine, "connect", _enable_sqlite_foreign_keys)
        return sqlite_engine
    return create_engine(database_url, pool_pre_ping=True)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


engine = make_engine(SETTINGS.database_url)
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine | None = None) -> None:
    bind = bind or engine
    with bind.connect() as connection:
        connection.execute(text("SELECT 1"))


def create_schema(bind: Engine | None = None) -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(bind or engine)
