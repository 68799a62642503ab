from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
import os


SQLITE_ASYNC_SCHEME = "sqlite+aiosqlite"


def get_engine(url: str | None = None):
    """Create an async SQLAlchemy engine. Defaults to in-memory SQLite when url is None."""
    url = url or f"{SQLITE_ASYNC_SCHEME}:///:memory:"
    # Normalize plain paths and sync sqlite URLs
    url = normalize_db_url(url)
    kwargs = {"echo": False}
    if url.endswith(":memory:") or url.endswith("://"):
        # one shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool
    engine = create_async_engine(url, **kwargs)
    if url.startswith("sqlite"):
        _enable_sqlite_transactions(engine)
    return engine


def _enable_sqlite_transactions(engine) -> None:
    """Let SQLAlchemy, not the sqlite3 module, decide where transactions begin.

    The DBAPI driver silently commits before DDL statements, which would let a
    migration half-apply. With isolation_level=None at the driver level and an
    explicit BEGIN emitted on SQLAlchemy's begin event, ALTER TABLE and friends
    roll back together with the rest of the transaction.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def normalize_db_url(value: str) -> str:
    """Normalize different DB connection representations into an async SQLAlchemy URL.

    - ``sqlite://`` and ``sqlite+pysqlite://`` URLs are switched to the aiosqlite driver.
    - Any other URL (contains '://') is returned as-is.
    - Anything else is treated as a filesystem path to a SQLite database.
    """
    if not value:
        return value

    if "://" in value:
        scheme, rest = value.split("://", 1)
        if scheme in ("sqlite", "sqlite+pysqlite"):
            return f"{SQLITE_ASYNC_SCHEME}://{rest}"
        return value

    if value == ":memory:":
        return f"{SQLITE_ASYNC_SCHEME}:///:memory:"

    # treat as a filesystem path -> sqlite
    # normalize backslashes for sqlite URL
    v = os.path.expanduser(value).replace("\\", "/")
    return f"{SQLITE_ASYNC_SCHEME}:///{v}"


def get_sessionmaker(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


def sqlite_path_from_url(url: str) -> str | None:
    """Return the database file path for a SQLite URL, or None for memory/non-SQLite URLs."""
    url = normalize_db_url(url)
    if not url.startswith("sqlite"):
        return None
    path = url.split("://", 1)[1]
    if path.startswith("/"):
        path = path[1:]
    if not path or path == ":memory:":
        return None
    return path


def ensure_parent_dir(url: str) -> None:
    """Create the directory holding a SQLite database file if it is missing."""
    path = sqlite_path_from_url(url)
    if path:
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
