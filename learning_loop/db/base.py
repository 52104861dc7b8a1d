"""Database configuration and base setup for Learning Loop."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


DEFAULT_DATABASE_URL = "sqlite:///.learning-loop/loop.db"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for Alembic and the ORM engine."""

    if url.drivername.startswith("postgresql+"):
        if any(token in url.drivername for token in ("async", "aiopg")):
            url = url.set(drivername="postgresql+psycopg")
    elif url.drivername.startswith("sqlite+"):
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver.

    A bare filesystem path is accepted and turned into a SQLite URL.
    """

    raw = raw_url or DEFAULT_DATABASE_URL
    if "://" not in raw:
        raw = f"sqlite:///{raw}"
    url = make_url(raw)
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


def _sqlite_file(url: URL) -> Optional[Path]:
    if not url.drivername.startswith("sqlite"):
        return None
    if not url.database or url.database == ":memory:":
        return None
    return Path(url.database)


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    """Create the engine for a database URL.

    SQLite runs over a single shared connection; the parent directory of a
    file database is created if missing.
    """
    url = make_url(get_database_url(database_url))

    if url.drivername.startswith("sqlite"):
        db_file = _sqlite_file(url)
        if db_file is not None:
            db_file.parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        if db_file is not None:
            event.listen(engine, "connect", _set_sqlite_pragmas)
        return engine

    return create_engine(
        url,
        pool_size=1,
        max_overflow=0,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


class Database:
    """Owns the engine and session factory for one store.

    Usage:
        database = Database("sqlite:///.learning-loop/loop.db")
        database.init_schema()
        with database.session() as db:
            RunService(db).count()
    """

    def __init__(self, database_url: Optional[str] = None):
        self.url = get_database_url(database_url)
        self.engine = create_db_engine(self.url)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    @property
    def path(self) -> Optional[str]:
        """Filesystem path of a SQLite file database, if any."""
        db_file = _sqlite_file(make_url(self.url))
        return str(db_file) if db_file is not None else None

    def init_schema(self) -> None:
        """Create all tables that do not exist yet."""
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def new_session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session and close it afterwards."""
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()


def open_database(database_url: Optional[str] = None) -> Database:
    """Open a store and make sure its schema exists."""
    database = Database(database_url)
    database.init_schema()
    return database
