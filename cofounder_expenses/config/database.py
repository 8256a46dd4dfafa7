"""
Database session management.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from cofounder_expenses.config.settings import settings


IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

connect_args = {}
if IS_SQLITE:
    connect_args = {"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS}

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    connect_args=connect_args
)


if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        """SQLite ships with foreign keys off; cascades depend on them."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Session:
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _begin_immediate(db: Session):
    """
    Take SQLite's write lock before the unit reads anything

    SQLite ignores SELECT ... FOR UPDATE, so without this two units could
    read the same expense version and one would lose the compare-and-swap.
    A connection already inside a transaction keeps the one it has.
    """
    dbapi_connection = db.connection().connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        dbapi_connection.execute("BEGIN IMMEDIATE")


@contextmanager
def atomic(db: Session):
    """
    One unit of work: commit on success, roll back and re-raise on any error

    Units queue on the write lock under SQLite; other databases serialize
    through the row locks taken inside the unit.
    """
    try:
        if IS_SQLITE:
            _begin_immediate(db)
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db():
    """Initialize database tables."""
    # Models register themselves on Base when imported
    from cofounder_expenses.models import company, user, expense, approval, notification, audit_log, category  # noqa: F401
    Base.metadata.create_all(bind=engine)
