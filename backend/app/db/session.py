"""Engine, session factory and transaction helpers."""

from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from backend.app.core.settings import get_settings

settings = get_settings()

_is_sqlite = settings.database_url.startswith("sqlite")
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

if _is_sqlite:
    # pysqlite manages BEGIN itself and breaks SAVEPOINT; take over transaction control.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _apply_timeout(db: Session, timeout_ms: int) -> None:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
    elif dialect == "sqlite":
        db.execute(text(f"PRAGMA busy_timeout = {int(timeout_ms)}"))


@contextmanager
def transaction(db: Session, timeout_ms: int | None = None):
    """Commit everything done in the block, or roll all of it back."""
    try:
        if timeout_ms:
            _apply_timeout(db, timeout_ms)
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
