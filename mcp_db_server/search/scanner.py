"""
Row-content scanner: keyword search inside table data
"""

import logging
from typing import Iterable, List, Optional

from psycopg2 import sql as pgsql

from ..database.adapters import DatabaseAdapter
from ..database.models import Column, FullTextSearchResult
from ..exceptions import ConnectionLost, QueryError, ValidationError
from ..utils.validation import ensure_known_identifier, qualified_name, require_text
from .engine import like_pattern
from .registry import run_lookup

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS_PER_TABLE = 100
TEXT_TYPE_MARKERS = ('char', 'text')


def is_text_column(column: Column) -> bool:
    """character varying, character, text and friends"""
    data_type = column.data_type.lower()
    return any(marker in data_type for marker in TEXT_TYPE_MARKERS)


def build_scan_query(schema: str, table: str, columns: List[str]) -> pgsql.Composed:
    """SELECT * ... WHERE col1::text ILIKE %s OR col2::text ILIKE %s ... LIMIT %s"""
    predicates = pgsql.SQL(' OR ').join(
        pgsql.SQL('{}::text ILIKE %s').format(pgsql.Identifier(column)) for column in columns
    )
    return pgsql.SQL('SELECT * FROM {} WHERE {} LIMIT %s').format(qualified_name(schema, table), predicates)


class RowContentScanner:
    """Scan the text columns of a schema's tables for a keyword"""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    def scan_tables(self, keyword: str, schema: str = 'public',
                    tables: Optional[Iterable[str]] = None,
                    columns: Optional[Iterable[str]] = None,
                    max_rows_per_table: int = DEFAULT_MAX_ROWS_PER_TABLE) -> List[FullTextSearchResult]:
        """One OR-chained ILIKE query per table; tables without matches are left out"""
        require_text(keyword, 'Keyword')
        if isinstance(max_rows_per_table, bool) or not isinstance(max_rows_per_table, int) or max_rows_per_table < 1:
            raise ValidationError("max_rows_per_table must be a positive integer")

        ensure_known_identifier(schema, run_lookup(self.adapter, 'schemas'), 'schema')
        table_filter = set(tables or [])
        column_filter = set(columns or [])
        logger.info(f"Full-text search for: {keyword} in schema: {schema}")

        candidates = run_lookup(self.adapter, 'tables', schema)
        if table_filter:
            candidates = [table for table in candidates if table.table_name in table_filter]

        pattern = like_pattern(keyword)
        results = []
        for table in candidates:
            try:
                table_columns = run_lookup(self.adapter, 'table_columns', schema, table.table_name)
                searchable = [
                    column.column_name for column in table_columns
                    if is_text_column(column) and (not column_filter or column.column_name in column_filter)
                ]
                if not searchable:
                    continue

                query = build_scan_query(schema, table.table_name, searchable)
                rows = self.adapter.execute(query, [pattern] * len(searchable) + [max_rows_per_table])
            except ConnectionLost:
                raise
            except QueryError as e:
                logger.warning(f"Error searching table {schema}.{table.table_name}: {e}")
                continue

            if rows:
                results.append(FullTextSearchResult(
                    table_name=table.table_name,
                    table_schema=schema,
                    matches=rows,
                    match_count=len(rows),
                ))

        logger.info(f"Full-text search for {keyword} matched {len(results)} tables")
        return results
