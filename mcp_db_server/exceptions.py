"""
Error types raised by the database layer
"""

from typing import Optional


class DatabaseError(Exception):
    """Base class for every error raised by this package"""


class ConfigurationError(DatabaseError, ConnectionError):
    """No reachable database at startup, or unusable connection settings"""


class ValidationError(DatabaseError):
    """A required request value is missing, blank or not a known identifier"""


class QueryError(DatabaseError):
    """The database rejected or failed a statement"""

    def __init__(self, message: str, sql: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.sql = sql
        self.code = code


class ConnectionLost(QueryError):
    """The session dropped while a statement was in flight"""
