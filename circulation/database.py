from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from circulation.config import settings


def build_engine(database_url: str, echo: bool = False):
    """Create an engine for the given URL.

    SQLite connections are shared across request threads and the sweeper
    thread, so the same-thread check is turned off for that dialect.
    """
    connect_args = {}
    engine_kwargs = {"echo": echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 15
    else:
        engine_kwargs.update(pool_recycle=300, pool_size=10, max_overflow=20)

    return create_engine(database_url, connect_args=connect_args, **engine_kwargs)


engine = build_engine(settings.database_url, echo=settings.db_echo)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory=SessionLocal):
    """One unit of work: commit on success, roll back on any error."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
