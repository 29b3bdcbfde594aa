import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from inbox.config import get_settings
from inbox.exceptions import InboxError, StorageError

logger = logging.getLogger(__name__)
settings = get_settings()

# Create SQLAlchemy engine
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {},
    echo=settings.DEBUG  # Log SQL queries in debug mode
)


def enable_sqlite_foreign_keys(target_engine):
    """Turn on foreign key enforcement for every new SQLite connection."""
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session, operation: str = "database operation"):
    """
    Run a block of service calls as one transaction.

    Commits when the block finishes, rolls back on any exception. Driver
    errors surface as StorageError so callers never see SQLAlchemy types.
    """
    try:
        yield db
        db.commit()
    except InboxError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure during {operation}: {e}")
        raise StorageError(f"Storage failure during {operation}", error=str(e)) from e
    except Exception:
        db.rollback()
        raise


def init_database(target_engine=None):
    """Create all tables that do not exist yet."""
    # Models must be imported so they register on Base.metadata
    import inbox.models  # noqa: F401

    target_engine = target_engine or engine
    Base.metadata.create_all(bind=target_engine)
    logger.info(f"Database initialized ({len(Base.metadata.tables)} tables)")


def reset_database(target_engine=None):
    """Drop and recreate all tables."""
    import inbox.models  # noqa: F401

    target_engine = target_engine or engine
    Base.metadata.drop_all(bind=target_engine)
    Base.metadata.create_all(bind=target_engine)
    logger.warning("Database reset: all tables dropped and recreated")
