import os
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# Use DATABASE_PATH env var for Docker, default to local path for development
DATABASE_PATH = os.environ.get("DATABASE_PATH", "./db.sqlite3")
SQLALCHEMY_DATABASE_URL = f"sqlite:///{DATABASE_PATH}"

# Seconds a store call may wait on a locked database before failing
DATABASE_TIMEOUT = float(os.environ.get("DATABASE_TIMEOUT", "5"))

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": DATABASE_TIMEOUT}
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_operation(db, operation: str):
    """Run a block of store calls, surfacing any driver failure as StoreUnavailableError."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Store operation '{operation}' failed: {e}")
        raise StoreUnavailableError(operation, str(e)) from e
