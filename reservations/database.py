from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings


def build_engine(url: str, lock_timeout_ms: int = settings.LOCK_TIMEOUT_MS) -> Engine:
    """
    Creates an engine whose transactions are safe for check-then-act booking logic.

    PostgreSQL serialises per property with row locks (see crud.lock_property).
    SQLite has no row locks, so every transaction is opened with BEGIN IMMEDIATE,
    which takes the database write lock up front. The driver timeout bounds the wait.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": lock_timeout_ms / 1000},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine(settings.DATABASE_URL)
# Committed objects stay loaded for building responses
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


Base = declarative_base()
