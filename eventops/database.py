import logging
import os
import time

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

# Pool settings only apply to server databases (Postgres)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
# Also used as the SQLite busy timeout
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def build_engine(url: str):
    """Create an engine with pooling suited to the backend behind ``url``"""
    if url.startswith("sqlite"):
        # Sessions are used from FastAPI's threadpool and from test threads
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": DB_POOL_TIMEOUT},
        )

    logger.info(
        f"📊 Database pool: size={DB_POOL_SIZE}, overflow={DB_MAX_OVERFLOW}, "
        f"timeout={DB_POOL_TIMEOUT}s, recycle={DB_POOL_RECYCLE}s"
    )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
        pool_timeout=DB_POOL_TIMEOUT,
        pool_recycle=DB_POOL_RECYCLE,
    )


def begin_write(db: Session) -> None:
    """
    Open the session's next transaction as a writer on SQLite.

    A deferred BEGIN lets two connections read the same agenda and only collide
    at the first write, so both could pass the availability check. BEGIN IMMEDIATE
    takes the database write lock before anything is read; other writers wait
    for it up to the busy timeout. Server databases lock the resource row with
    SELECT ... FOR UPDATE instead, so this is a no-op there.
    """
    if db.get_bind().dialect.name != "sqlite":
        return
    # Close whatever read-only transaction the session has open
    db.rollback()
    db.execute(text("BEGIN IMMEDIATE"))


def install_slow_query_logging(target_engine, threshold: float = SLOW_QUERY_SECONDS) -> None:
    """Warn about statements slower than ``threshold`` seconds"""

    @event.listens_for(target_engine, "before_cursor_execute")
    def start_timer(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("statement_started", []).append(time.perf_counter())

    @event.listens_for(target_engine, "after_cursor_execute")
    def stop_timer(conn, cursor, statement, parameters, context, executemany):
        elapsed = time.perf_counter() - conn.info["statement_started"].pop()
        if elapsed > threshold:
            logger.warning(f"🐌 Slow statement ({elapsed:.2f}s): {statement[:200]}")


engine = build_engine(DATABASE_URL)
if LOG_SLOW_QUERIES:
    install_slow_query_logging(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
