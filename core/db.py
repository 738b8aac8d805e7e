"""
core/db.py -- SQLAlchemy engine factory shared by every store.

Each package owns its own tables and MetaData (auth/store.py, whitelist/store.py,
activity/store.py, extconfig/store.py); they all build engines here so the
SQLite threading and journal settings are applied consistently.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine for db_url.

    FastAPI runs sync handlers in a threadpool, so SQLite connections must be
    usable from threads other than the one that opened them.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine
