# enrollment_ledger/core/db.py - SQLAlchemy engine, sessions and the unit-of-work coordinator
from sqlalchemy import create_engine, text, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool, QueuePool
from typing import Iterator, Optional
import logging
import time
import threading
from contextlib import contextmanager

from enrollment_ledger.core.config import Settings
from enrollment_ledger.models.base import Base
from enrollment_ledger.services.errors import EnrollmentLedgerError, InternalFailure

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Owns the engine and session factory for one application instance.

    Constructed explicitly (normally inside the FastAPI lifespan) and passed
    to the services that need storage; close() disposes the pool.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._initialized = False
        self._lock = threading.Lock()

    def initialize(self):
        """Initialize database engine and session maker"""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.engine = self._create_engine()
                self.SessionLocal = sessionmaker(
                    autocommit=False,
                    autoflush=False,
                    expire_on_commit=False,
                    bind=self.engine
                )

                self._setup_event_listeners()
                self._test_connection()

                self._initialized = True
                logger.info(f"Database initialized: {self.settings.database_location}")

            except Exception as e:
                logger.error(f"Failed to initialize database: {e}")
                raise

    def _create_engine(self) -> Engine:
        """Create SQLAlchemy engine for SQLite or PostgreSQL"""
        settings = self.settings
        engine_args = {
            "url": settings.DATABASE_URL,
            "echo": settings.DATABASE_ECHO,
        }

        if settings.is_sqlite:
            engine_args["connect_args"] = {
                "check_same_thread": False,
                # seconds to wait on a locked database before failing
                "timeout": settings.DATABASE_LOCK_TIMEOUT_MS / 1000,
            }
            if settings.is_sqlite_memory:
                # one shared connection, otherwise every checkout sees an empty database
                engine_args["poolclass"] = StaticPool
        else:
            engine_args.update({
                "poolclass": QueuePool,
                "pool_size": settings.DATABASE_POOL_SIZE,
                "max_overflow": settings.DATABASE_MAX_OVERFLOW,
                "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
                "pool_recycle": settings.DATABASE_POOL_RECYCLE,
                "pool_pre_ping": True,
                "connect_args": {
                    "connect_timeout": 10,
                    "application_name": f"enrollment_ledger_{settings.ENV}",
                    "options": f"-c timezone=UTC -c lock_timeout={settings.DATABASE_LOCK_TIMEOUT_MS}",
                },
            })

        return create_engine(**engine_args)

    def _setup_event_listeners(self):
        """Set up SQLAlchemy event listeners for locking and slow-query logging"""
        settings = self.settings

        if settings.is_sqlite:
            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                # hand transaction control to the "begin" listener below
                dbapi_connection.isolation_level = None
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                if not settings.is_sqlite_memory:
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.close()

            @event.listens_for(self.engine, "begin")
            def begin_immediate(conn):
                # SQLite has no row locks; take the write lock up front so
                # balance reads inside a unit of work cannot go stale
                conn.exec_driver_sql("BEGIN IMMEDIATE")

        threshold = settings.SLOW_QUERY_THRESHOLD_MS / 1000

        @event.listens_for(self.engine, "before_cursor_execute")
        def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if settings.is_development:
                context._query_start_time = time.time()

        @event.listens_for(self.engine, "after_cursor_execute")
        def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if settings.is_development and hasattr(context, '_query_start_time'):
                total = time.time() - context._query_start_time
                if total > threshold:
                    logger.warning(f"Slow query ({total:.3f}s): {statement[:100]}...")

    def _test_connection(self):
        """Test database connection and log status"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()

                if self.engine.dialect.name == "postgresql":
                    db_info = conn.execute(text("SELECT version()")).fetchone()
                    logger.info(f"Connected to PostgreSQL: {db_info[0][:50]}...")
                elif self.engine.dialect.name == "sqlite":
                    db_info = conn.execute(text("SELECT sqlite_version()")).fetchone()
                    logger.info(f"Connected to SQLite: {db_info[0]}")

        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            raise

    def create_all(self):
        """Create any missing tables (development and tests; production uses Alembic)"""
        if not self._initialized:
            self.initialize()
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Read-only session. Anything left pending is rolled back on exit.
        """
        if not self._initialized:
            self.initialize()

        session = self.SessionLocal()
        try:
            yield session
        finally:
            session.rollback()
            session.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Atomic unit of work: commits on success, rolls back on any error.

        Usage:
            with db.transaction() as session:
                ledger = LedgerService(session)
                ledger.debit(student_id, amount)
                session.add(enrollment)

        Domain errors propagate unchanged. Storage errors (lock timeouts,
        constraint violations, stale versions) surface as InternalFailure.
        """
        if not self._initialized:
            self.initialize()

        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except EnrollmentLedgerError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise InternalFailure("Storage failure; no changes were saved") from e
        except BaseException:
            # includes cancellation and interpreter shutdown
            session.rollback()
            raise
        finally:
            session.close()

    def health_check(self) -> dict:
        """
        Perform database health check.

        Returns:
            Dict with health status information
        """
        try:
            start_time = time.time()

            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            response_time = (time.time() - start_time) * 1000
            return {
                "status": "healthy",
                "response_time_ms": round(response_time, 2),
                "pool": self.engine.pool.status(),
                "database": self.settings.database_location,
            }

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    def close(self):
        """Close database connections and cleanup"""
        if self.engine:
            self.engine.dispose()
            logger.info("Database connections closed")
        self._initialized = False


__all__ = ["DatabaseManager"]
