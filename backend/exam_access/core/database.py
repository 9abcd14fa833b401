import logging
import zlib
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import QueuePool

from .config import settings
from .errors import StorageUnavailable

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=settings.db_pool_recycle,
        pool_timeout=settings.db_pool_timeout,
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "application_name": "exam_access_engine"
        }
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_db_and_tables(bind=None):
    from .. import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(bind or engine, checkfirst=True)
    logger.info("Database tables created successfully")


def acquire_pair_lock(db: Session, student_id: str, exam_id: str) -> None:
    """Serialize writers for one (student, exam) pair until the transaction ends.

    PostgreSQL gets a transaction-scoped advisory lock. Other backends rely on
    their own write serialization plus the unique indexes on the tables.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    key = zlib.crc32(f"{student_id}:{exam_id}".encode("utf-8"))
    db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})


@contextmanager
def transaction(db: Session):
    """Commit on success; roll back and surface storage failures as retryable."""
    try:
        yield db
        db.commit()
    except StorageUnavailable:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure, transaction rolled back: {e}", exc_info=True)
        raise StorageUnavailable(str(e)) from e
    except Exception:
        db.rollback()
        raise
