import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """
    Persistence handle owning one engine and its session factory.

    Workflows open exactly one `transaction()` per logical operation and pass
    the yielded session down to every store call inside it.

    On SQLite every transaction starts with BEGIN IMMEDIATE, so writers are
    serialized on the database lock; SELECT ... FOR UPDATE is a no-op there.
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        if url.startswith("sqlite"):
            connect_args = engine_kwargs.pop("connect_args", {})
            connect_args.setdefault("check_same_thread", False)
            connect_args.setdefault("timeout", 30)
            self.engine = create_engine(url, echo=echo, connect_args=connect_args, **engine_kwargs)
            event.listen(self.engine, "connect", _on_sqlite_connect)
            event.listen(self.engine, "begin", _begin_sqlite_immediate)
        else:
            self.engine = create_engine(url, echo=echo, **engine_kwargs)

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_all(self) -> None:
        load_models()
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Unit of work: commit on success, roll back and re-raise on any error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            logger.debug("Transaction rolled back")
            raise
        finally:
            db.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only session; never committed. Loaded objects stay usable after close."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()


def load_models() -> None:
    """Import every mapped model so its table is registered on `Base.metadata`."""
    import models.User  # noqa: F401
    import models.Barang  # noqa: F401
    import models.StokHarian  # noqa: F401
    import models.AmbilBarang  # noqa: F401
    import models.Keuangan  # noqa: F401
    import models.AuditTrail  # noqa: F401


def _on_sqlite_connect(dbapi_connection, connection_record):
    # Hand transaction control to SQLAlchemy so the "begin" hook decides how BEGIN is emitted
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_immediate(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    with get_database(request).session() as db:
        yield db
