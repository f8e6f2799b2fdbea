from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from doorwin.core.config import settings


def make_engine(url: str):
    """Create an engine, relaxing SQLite's same-thread check for request threads"""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Database dependency for FastAPI"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables on the given engine (defaults to the configured one)"""
    # Import models so they register on Base.metadata
    from doorwin.models import database  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def transaction(db: Session):
    """
    Unit of work: commit everything written inside the block,
    roll all of it back if anything raises.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
