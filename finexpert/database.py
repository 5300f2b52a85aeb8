import logging

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, create_engine

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,  # avoid multiple pooled connections holding write locks
        )
        # Configure SQLite pragmas to reduce locking
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode=WAL;")
                conn.exec_driver_sql("PRAGMA busy_timeout=60000;")
        except OperationalError:
            # Database may be momentarily locked (e.g. during reloader startup).
            logger.warning("Could not set SQLite pragmas for %s", database_url)
        return engine

    return create_engine(database_url, echo=echo)


def get_session(request: Request):
    with Session(request.app.state.engine) as session:
        yield session


def init_db(engine: Engine) -> None:
    from .models import budget, expense  # noqa: F401

    SQLModel.metadata.create_all(engine)
