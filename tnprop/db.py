from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

from tnprop.config import DATABASE_URL, DB_ECHO


class Base(DeclarativeBase):
    pass


@lru_cache
def get_engine(database_url: str = DATABASE_URL) -> Engine:
    return create_engine(
        database_url,
        echo=DB_ECHO,
        pool_pre_ping=True,
    )


def init_db(engine: Engine | None = None) -> Engine:
    """Create any missing tables."""
    # Register mapped classes on Base.metadata
    from tnprop import models  # noqa: F401

    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    return engine
