"""
PostgreSQL Connection Helper

Provides thread-safe connection pooling and context management for database operations.
Handles connection lifecycle and error handling.
"""

from psycopg2 import pool, OperationalError
from contextlib import contextmanager
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Manages PostgreSQL connections with a threaded connection pool.

    The pool is shared by the loader's worker threads, so it must be a
    ThreadedConnectionPool sized to at least the worker count.
    """

    _pool: Optional[pool.ThreadedConnectionPool] = None

    @classmethod
    def initialize(
        cls,
        host: str = "localhost",
        port: int = 5432,
        database: str = "etl_db",
        user: Optional[str] = None,
        password: Optional[str] = None,
        dsn: Optional[str] = None,
        sslmode: str = "prefer",
        statement_timeout_ms: int = 10000,
        min_connections: int = 1,
        max_connections: int = 10,
    ) -> None:
        """
        Initialize the connection pool.

        Args:
            host: PostgreSQL server host
            port: PostgreSQL server port
            database: Database name
            user: Database user
            password: Database password
            dsn: Full connection string; overrides the individual parts
            sslmode: libpq sslmode
            statement_timeout_ms: Server-side timeout applied to every statement
            min_connections: Minimum pool connections
            max_connections: Maximum pool connections

        Raises:
            OperationalError: If connection fails
        """
        options = f"-c statement_timeout={int(statement_timeout_ms)}"
        try:
            if dsn:
                cls._pool = pool.ThreadedConnectionPool(
                    min_connections,
                    max_connections,
                    dsn=dsn,
                    options=options,
                    connect_timeout=10,
                )
            else:
                cls._pool = pool.ThreadedConnectionPool(
                    min_connections,
                    max_connections,
                    host=host,
                    port=port,
                    database=database,
                    user=user,
                    password=password,
                    sslmode=sslmode,
                    options=options,
                    connect_timeout=10,
                )
            logger.info(f"Database pool initialized with {min_connections}-{max_connections} connections")
        except OperationalError as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise

    @classmethod
    def from_settings(cls, settings) -> None:
        """Initialize the pool from a Settings object."""
        cls.initialize(
            host=settings.DB_HOST,
            port=settings.DB_PORT,
            database=settings.DB_NAME,
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            dsn=settings.DATABASE_URL,
            sslmode=settings.DB_SSLMODE,
            statement_timeout_ms=settings.DB_STATEMENT_TIMEOUT_MS,
            min_connections=1,
            max_connections=settings.LOAD_WORKERS + 1,
        )

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._pool is not None

    @classmethod
    def close_all(cls) -> None:
        """Close all connections in the pool."""
        if cls._pool:
            cls._pool.closeall()
            cls._pool = None
            logger.info("Database pool closed")

    @classmethod
    @contextmanager
    def get_connection(cls):
        """
        Context manager to get a connection from the pool.

        Yields:
            psycopg2 connection object

        Raises:
            OperationalError: If pool is not initialized or connection fails
        """
        if cls._pool is None:
            raise OperationalError("Database pool not initialized. Call initialize() first.")

        conn = None
        try:
            conn = cls._pool.getconn()
            yield conn
            conn.commit()
        except Exception as e:
            if conn:
                conn.rollback()
            logger.debug(f"Transaction rolled back: {e}")
            raise
        finally:
            if conn:
                cls._pool.putconn(conn)

    @classmethod
    @contextmanager
    def get_cursor(cls, commit: bool = True):
        """
        Context manager to get a cursor for direct SQL execution.

        Args:
            commit: Whether to auto-commit on success

        Yields:
            psycopg2 cursor object

        Example:
            with DatabaseConnection.get_cursor() as cursor:
                cursor.execute("SELECT * FROM student")
                results = cursor.fetchall()
        """
        with cls.get_connection() as conn:
            cursor = conn.cursor()
            try:
                yield cursor
                if commit:
                    conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    @classmethod
    def execute_query(cls, query: str, params: Optional[tuple] = None) -> list:
        """
        Execute a SELECT query and return results.

        Args:
            query: SQL query string
            params: Query parameters (optional)

        Returns:
            List of result rows
        """
        with cls.get_cursor(commit=False) as cursor:
            cursor.execute(query, params or ())
            return cursor.fetchall()

    @classmethod
    def execute_returning(cls, query: str, params: Optional[tuple] = None):
        """
        Execute a write with a RETURNING clause and return the first row.

        Returns:
            The first returned row, or None
        """
        with cls.get_cursor(commit=True) as cursor:
            cursor.execute(query, params or ())
            return cursor.fetchone()
