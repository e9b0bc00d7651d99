from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session as OrmSession, sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///nfme_issuer.db"


class Base(DeclarativeBase):
    pass


def init_engine(db_url: str = DEFAULT_DATABASE_URL) -> Engine:
    connect_args = {}
    if db_url.startswith("sqlite"):
        # The issuer service and the event indexer share one engine across request threads
        connect_args["check_same_thread"] = False
    return create_engine(db_url, echo=False, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    """Create the issuer tables (issued claims, relayed events, audit log) if missing."""
    from . import models  # noqa: F401

    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope(Session: sessionmaker) -> Iterator[OrmSession]:
    """One unit of work: commit when the block succeeds, roll back and re-raise otherwise."""
    session = Session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
