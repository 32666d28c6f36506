from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .errors import TransientIOError
from .settings import settings


class Base(DeclarativeBase):
    pass


def make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        # sqlite:///./data/progman.db -> make sure ./data exists
        db_path = url.split("///", 1)[-1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    eng = create_engine(url, connect_args=connect_args, future=True)
    if url.startswith("sqlite"):
        _enable_sqlite_savepoints(eng)
    return eng


def _enable_sqlite_savepoints(eng: Engine) -> None:
    # pysqlite defers BEGIN until the first DML, which breaks SAVEPOINT;
    # emit BEGIN ourselves (recipe from the SQLAlchemy SQLite dialect docs).
    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def configure(new_engine: Engine) -> None:
    """Point the session factory at another engine (tests, alternate stores)."""
    global engine
    engine = new_engine
    SessionLocal.configure(bind=new_engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Transactional scope: commit on success, roll back on any error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except OperationalError as e:
        db.rollback()
        raise TransientIOError(f"Persistence layer unavailable: {e.orig}") from e
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
