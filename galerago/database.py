# galerago/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from galerago.config import settings
from galerago.exceptions import ConflictError, InternalError

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    # An in-memory database only lives as long as its single connection
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


engine = create_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit(db, action: str, conflict_message: str = None):
    """
    Commit the current transaction.

    Integrity violations become ConflictError when the caller expects them
    (conflict_message given); every other storage failure is rolled back,
    logged and surfaced as InternalError without the database details.
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if conflict_message:
            logger.info("Integrity conflict while trying to %s: %s", action, e.orig)
            raise ConflictError(conflict_message)
        logger.exception("Integrity error while trying to %s", action)
        raise InternalError(f"Failed to {action}")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database error while trying to %s", action)
        raise InternalError(f"Failed to {action}")
