"""
Database connection provider and catalog records
"""

from .models import (
    Table, Column, Function, Constraint, DataType, ForeignKey,
    SearchResult, FullTextSearchResult, QueryColumn, QueryResult,
)
from .adapters import DatabaseAdapter, PostgreSQLAdapter
from .factory import DatabaseFactory

__all__ = [
    'Table',
    'Column',
    'Function',
    'Constraint',
    'DataType',
    'ForeignKey',
    'SearchResult',
    'FullTextSearchResult',
    'QueryColumn',
    'QueryResult',
    'DatabaseAdapter',
    'PostgreSQLAdapter',
    'DatabaseFactory'
]
