"""
Database connection and management module.
Handles the PostgreSQL connection pool holding the master tables.
"""

import psycopg2
import psycopg2.errors
from psycopg2 import pool
from psycopg2.extensions import connection as Connection
from contextlib import contextmanager
from typing import Generator, Optional, Dict, Any
import logging

from app.config import settings
from app.core.exceptions import AppException, DuplicateKeyError, StorageError

logger = logging.getLogger(__name__)


def describe_db_error(exc: Exception) -> str:
    """
    Render a driver error as ``[SQLSTATE] message`` when the server supplied a code.

    Args:
        exc: Error raised by psycopg2

    Returns:
        Human readable, single line description
    """
    code = getattr(exc, "pgcode", None)
    diag = getattr(exc, "diag", None)
    message = getattr(diag, "message_primary", None) if diag is not None else None
    if not message:
        message = str(exc).strip().splitlines()[0] if str(exc).strip() else type(exc).__name__
    return f"[{code}] {message}" if code else message


def translate_db_error(exc: psycopg2.Error) -> AppException:
    """Map a psycopg2 error onto the application's storage exceptions."""
    detail = describe_db_error(exc)
    if isinstance(exc, psycopg2.errors.UniqueViolation):
        return DuplicateKeyError(details={"db_error": detail})
    return StorageError(details={"db_error": detail})


class DatabaseManager:
    """Manages the connection pool for the master database."""

    _instance: Optional["DatabaseManager"] = None
    _pool: Optional[pool.SimpleConnectionPool] = None

    def __new__(cls):
        """Singleton pattern for DatabaseManager."""
        if cls._instance is None:
            cls._instance = super(DatabaseManager, cls).__new__(cls)
            cls._instance._initialize_pool()
        return cls._instance

    def _initialize_pool(self) -> None:
        """Initialize database connection pool."""
        try:
            self._pool = pool.SimpleConnectionPool(
                minconn=1,
                maxconn=settings.DB_POOL_SIZE,
                dsn=settings.DATABASE_URL
            )
            logger.info(
                f"Connection pool initialized for {settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
            )
        except Exception as e:
            logger.error(f"Failed to initialize database pool: {str(e)}")
            raise StorageError(
                "Database pool initialization failed",
                details={"db_error": str(e)}
            )

    @contextmanager
    def get_connection(self) -> Generator[Connection, None, None]:
        """
        Get a pooled connection wrapped in a transaction.

        The transaction is committed when the block exits normally and rolled
        back otherwise. Driver errors surface as ``DuplicateKeyError`` or
        ``StorageError``.

        Yields:
            Database connection
        """
        connection = None
        try:
            if not self._pool:
                raise StorageError("Connection pool not initialized")

            connection = self._pool.getconn()
            yield connection
            connection.commit()

        except psycopg2.Error as e:
            if connection:
                connection.rollback()
            translated = translate_db_error(e)
            logger.error(f"Database error: {translated.details.get('db_error')}")
            raise translated from e
        except Exception:
            if connection:
                connection.rollback()
            raise
        finally:
            if connection:
                self._pool.putconn(connection)

    def get_pool_status(self) -> Dict[str, Any]:
        """
        Get status of the connection pool.

        Returns:
            Dictionary with pool status information
        """
        return {
            "initialized": self._pool is not None and not self._pool.closed,
            "database": settings.DB_NAME,
            "max_connections": settings.DB_POOL_SIZE
        }

    def close_pool(self) -> None:
        """Close the connection pool."""
        if self._pool:
            self._pool.closeall()
            logger.info("Database connection pool closed")


def get_db_manager() -> DatabaseManager:
    """Get DatabaseManager singleton instance."""
    return DatabaseManager()
