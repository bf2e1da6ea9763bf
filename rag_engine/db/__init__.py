"""
Database engine factory.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from ..config import DATABASE_URL


def create_db_engine(url: str = DATABASE_URL) -> Engine:
    """
    Create an engine for the embeddings database.

    SQLite connections get foreign keys switched on so that deleting a
    document cascades to its chunks. In-memory SQLite shares one connection
    across threads, otherwise every checkout would see an empty database.
    """
    kwargs = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool

    db_engine = create_engine(url, **kwargs)

    if db_engine.dialect.name == "sqlite":
        @event.listens_for(db_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return db_engine


engine = create_db_engine()
