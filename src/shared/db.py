"""SQLAlchemy engine/session helpers and the few dialect-specific SQL builders.

Production runs on PostgreSQL; the unit tests run the same statements on an
in-memory SQLite database.
"""

from datetime import datetime, timezone

from sqlalchemy import Engine, create_engine, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config import get_settings
from shared.errors import ConfigurationError

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    """Create the process-wide engine (and its pool) on first use."""
    global _engine, _session_factory
    if _engine is None:
        url = get_settings().database_url
        if not url:
            raise ConfigurationError("Missing env var: DATABASE_URL")
        if url.startswith("sqlite"):
            _engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            _engine = create_engine(url, pool_pre_ping=True, pool_recycle=300)
        _session_factory = sessionmaker(bind=_engine, autocommit=False, autoflush=False)
    return _engine


def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_db():
    get_engine()
    db = _session_factory()
    try:
        yield db
    finally:
        db.close()


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def dialect_name(db: Session) -> str:
    return db.get_bind().dialect.name


def upsert_insert(db: Session, table):
    """An INSERT construct that supports ``on_conflict_do_update`` for the bound dialect."""
    name = dialect_name(db)
    if name == "postgresql":
        return pg_insert(table)
    if name == "sqlite":
        return sqlite_insert(table)
    raise ConfigurationError(f"Unsupported database dialect: {name}")


def string_set_elements(db: Session, column):
    """
    Expand a string-set column into a table-valued FROM with one ``value`` per element.

    PostgreSQL stores string sets as text[] (unnest); SQLite as JSON (json_each).
    """
    if dialect_name(db) == "postgresql":
        return func.unnest(column).table_valued("value").render_derived()
    return func.json_each(column).table_valued("value")
