"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
the request-scoped session dependency plus the `UnitOfWork` used by
services to group multi-row writes into a single transaction.
"""

import logging
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from .config import settings
from .errors import ConflictError

logger = logging.getLogger("registration.database")


def make_engine(url: str, **kwargs) -> Engine:
    """Create an engine for `url`, adding SQLite threading options when needed."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=False, **kwargs)


engine = make_engine(settings.DATABASE_URL)


def create_db_and_tables(bind: Engine = None):
    """Create any missing tables using SQLModel metadata.

    Existing tables and rows are left untouched; schema changes to
    existing tables are out of scope for this helper.
    """
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session


class UnitOfWork:
    """Group the writes of one logical operation into one transaction.

    Usable explicitly (`begin`/`commit`/`rollback`) or as a context
    manager, which commits on normal exit and rolls back when the block
    raises. Reads done in the same session before `begin` belong to the
    same transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    def begin(self):
        if not self.session.in_transaction():
            self.session.begin()
        return self

    def commit(self):
        """Commit pending changes, turning integrity violations into `ConflictError`."""
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning("commit rejected by integrity constraint: %s", exc.orig)
            raise ConflictError("the change conflicts with an existing record") from exc

    def rollback(self):
        self.session.rollback()

    def __enter__(self):
        return self.begin()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.commit()
            return False
        self.rollback()
        if isinstance(exc, IntegrityError):
            raise ConflictError("the change conflicts with an existing record") from exc
        return False
