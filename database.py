"""
database.py — SQLAlchemy engine and session management for Wanderwise.

Provides:
  engine       — the shared SQLAlchemy engine
  SessionLocal — sessionmaker bound to the engine
  get_db()     — FastAPI dependency that yields a session per request
  init_db()    — create all tables (called once at startup)

All SQLAlchemy calls are synchronous. Use starlette.concurrency.run_in_threadpool
to call blocking DB operations from async route handlers without blocking the
event loop.
"""

import os
import logging
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from models import db

logger = logging.getLogger(__name__)

_raw_db_url = os.getenv('DATABASE_URL', 'sqlite:///wanderwise.db')


def _safe_db_url(url: str) -> str:
    """
    Ensure PostgreSQL URLs use the postgresql:// dialect prefix.
    Some hosts inject postgres:// instead of postgresql://.
    """
    if url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


def _is_memory_sqlite(url: str) -> bool:
    return url in ('sqlite://', 'sqlite:///:memory:')


_db_url = _safe_db_url(_raw_db_url)

# ── Engine ────────────────────────────────────────────────────────────────────
_engine_kwargs: dict = {'pool_pre_ping': True}
if _db_url.startswith('sqlite'):
    _engine_kwargs['connect_args'] = {'timeout': 15, 'check_same_thread': False}
if _is_memory_sqlite(_db_url):
    # One shared connection, otherwise every pooled connection sees its own empty DB
    _engine_kwargs['poolclass'] = StaticPool

engine = create_engine(_db_url, **_engine_kwargs)

# ── SQLite pragmas ────────────────────────────────────────────────────────────
# WAL allows concurrent readers + one writer; foreign_keys makes the
# stops.route_id ON DELETE CASCADE effective. No-op for PostgreSQL.
if _db_url.startswith('sqlite'):
    @event.listens_for(engine, 'connect')
    def _set_sqlite_pragmas(dbapi_conn, _connection_record):
        cursor = dbapi_conn.cursor()
        if not _is_memory_sqlite(_db_url):
            cursor.execute('PRAGMA journal_mode=WAL')
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

# ── Session factory ───────────────────────────────────────────────────────────
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,   # prevents lazy-load errors after commit in async context
)


def init_db() -> None:
    """Create all tables. Safe to call repeatedly."""
    db.metadata.create_all(engine)
    try:
        with engine.connect() as conn:
            conn.execute(text('SELECT 1'))
        logger.info('Database ready: %s', engine.url.render_as_string(hide_password=True))
    except Exception as exc:
        logger.warning('Database connectivity check failed: %s', exc)


# ── FastAPI dependency ────────────────────────────────────────────────────────

def get_db() -> Generator[Session, None, None]:
    """
    Yield a SQLAlchemy session for the duration of a request, then close it.

    Usage:
        from fastapi import Depends
        from database import get_db

        async def my_route(db_session: Session = Depends(get_db)):
            ...
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
