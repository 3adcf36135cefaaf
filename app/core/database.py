"""
Database engine, session factory and the unit-of-work boundary used by every
ledger-mutating service call.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings
from app.logger_config import logger

# Engine is lazy: no connection is opened until the first session uses it.
engine = create_engine(settings.database_url, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=True, bind=engine)

Base = declarative_base()


@contextmanager
def unit_of_work(db: Session):
    """
    Run a block of writes as one atomic unit.
    Commits when the block finishes; any exception rolls back every write made
    inside the block and is re-raised to the caller unchanged.
    """
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Unit of work rolled back: {type(e).__name__}: {e}")
        raise
