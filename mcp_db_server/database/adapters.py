"""
Database adapters: pooled PostgreSQL sessions
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import psycopg2
from psycopg2 import sql as pgsql
from psycopg2.extras import RealDictCursor
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import ConfigurationError, ConnectionLost, QueryError
from ..config import DatabaseConfig
from .models import QueryColumn, QueryResult

logger = logging.getLogger(__name__)

Statement = Union[str, pgsql.Composable]


def describe_statement(statement: Statement, context: Any = None) -> str:
    """Readable text of a statement for error messages and logs

    Composed statements are rendered as SQL when a live psycopg2 connection is given.
    """
    if isinstance(statement, str):
        return statement
    if context is not None and not context.closed:
        try:
            return statement.as_string(context)
        except psycopg2.Error as e:
            logger.debug(f"Could not render statement: {e}")
    return repr(statement)


class DatabaseAdapter(ABC):
    """Abstract base class for database adapters"""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the startup handshake succeeded"""
        pass

    @abstractmethod
    def connect(self) -> None:
        """Perform the startup handshake"""
        pass

    @abstractmethod
    def execute(self, statement: Statement, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute a statement with positional parameters and return its rows"""
        pass

    @abstractmethod
    def execute_with_schema(self, statement: str) -> QueryResult:
        """Execute a statement and return its rows along with the column descriptions"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release every pooled session"""
        pass


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL adapter backed by a SQLAlchemy pool of psycopg2 connections"""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._connected = False
        self.engine = create_engine(
            config.url,
            pool_size=config.pool_min,
            max_overflow=config.pool_max - config.pool_min,
            pool_pre_ping=True,
            connect_args={
                'connect_timeout': config.connect_timeout,
                'options': f"-c statement_timeout={config.command_timeout * 1000}",
            },
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        """Connect to PostgreSQL and fail fast if the server is unreachable"""
        try:
            conn = self.engine.raw_connection()
        except (psycopg2.Error, SQLAlchemyError) as e:
            raise ConfigurationError(f"PostgreSQL connection failed: {e}") from e

        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT version()")
                version = cursor.fetchone()[0]
            conn.commit()
        except psycopg2.Error as e:
            raise ConfigurationError(f"PostgreSQL connection failed: {e}") from e
        finally:
            conn.close()

        self._connected = True
        logger.info(f"Connected to {self.config.safe_url} ({version})")

    @contextmanager
    def _session(self, statement: Statement) -> Iterator[Any]:
        """Borrow a pooled connection; commit on success, roll back on error, always give it back"""
        try:
            conn = self.engine.raw_connection()
        except (psycopg2.Error, SQLAlchemyError) as e:
            raise ConnectionLost(f"Could not acquire a database session: {e}",
                                 describe_statement(statement)) from e

        try:
            yield conn
            conn.commit()
        except psycopg2.Error as e:
            message = str(e).strip()
            sql_text = describe_statement(statement, conn.dbapi_connection)
            if conn.dbapi_connection.closed:
                conn.invalidate()
                raise ConnectionLost(message, sql_text, e.pgcode) from e
            conn.rollback()
            raise QueryError(message, sql_text, e.pgcode) from e
        finally:
            conn.close()

    def execute(self, statement: Statement, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute a statement; parameters are always bound by the driver"""
        with self._session(statement) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(statement, list(params) if params else None)
                if cursor.description is None:
                    return []
                return [dict(row) for row in cursor.fetchall()]

    def execute_with_schema(self, statement: str) -> QueryResult:
        """Execute a raw statement and describe its result columns"""
        with self._session(statement) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(statement)
                if cursor.description is None:
                    return QueryResult(affected_rows=cursor.rowcount)

                columns = [QueryColumn(name=desc.name, type_oid=desc.type_code) for desc in cursor.description]
                rows = [dict(row) for row in cursor.fetchall()]
                return QueryResult(columns=columns, rows=rows, affected_rows=cursor.rowcount)

    def close(self) -> None:
        self.engine.dispose()
        self._connected = False
        logger.info("Database connection closed")
