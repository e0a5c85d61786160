"""
database.py - Ledger Store

Owns the SQLAlchemy engine and session factory for a service. A single
LedgerStore is created at startup, handed to the code that needs it, and
disposed at shutdown.

PostgreSQL is the production store: purchases lock the product row with
SELECT ... FOR UPDATE, and lock/statement timeouts are applied as connection
options so a stalled transaction cannot block forever.

SQLite is supported for local runs and tests. It has no row locks, so every
transaction is opened with BEGIN IMMEDIATE, which takes the database write
lock up front and serializes writers instead.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


def build_postgres_url(user: str, password: str, host: str, port: str, db: str) -> str:
    """Build a psycopg2 connection URL."""
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{db}"


class LedgerStore:
    """Transactional relational store shared by the repository layer."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        lock_timeout_ms: Optional[int] = None,
        statement_timeout_ms: Optional[int] = None,
        ssl: bool = False,
        sqlite_busy_timeout: float = 30.0,
        echo: bool = False,
    ):
        self.database_url = database_url
        self.engine = self._create_engine(
            database_url,
            pool_size=pool_size,
            lock_timeout_ms=lock_timeout_ms,
            statement_timeout_ms=statement_timeout_ms,
            ssl=ssl,
            sqlite_busy_timeout=sqlite_busy_timeout,
            echo=echo,
        )
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @staticmethod
    def _create_engine(
        database_url: str,
        pool_size: int,
        lock_timeout_ms: Optional[int],
        statement_timeout_ms: Optional[int],
        ssl: bool,
        sqlite_busy_timeout: float,
        echo: bool,
    ) -> Engine:
        if database_url.startswith("sqlite"):
            engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False, "timeout": sqlite_busy_timeout},
            )
            _install_sqlite_locking(engine)
            return engine

        connect_args = {}
        options = []
        if lock_timeout_ms:
            options.append(f"-c lock_timeout={int(lock_timeout_ms)}")
        if statement_timeout_ms:
            options.append(f"-c statement_timeout={int(statement_timeout_ms)}")
        if options:
            connect_args["options"] = " ".join(options)
        if ssl:
            connect_args["sslmode"] = "require"

        return create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_size=pool_size,
            connect_args=connect_args,
        )

    def create_all(self, metadata: MetaData) -> None:
        """Create any missing tables."""
        logger.info("Initializing database...")
        metadata.create_all(bind=self.engine)
        logger.info("Database initialized")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run a unit of work: commit on success, roll back on any exception."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except BaseException:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Read-only session, always closed afterwards."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        """Close pooled connections. Checked-out connections close on return."""
        self.engine.dispose()
        logger.info("Database connections closed")


def _install_sqlite_locking(engine: Engine) -> None:
    """Take over transaction handling from pysqlite and begin IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
