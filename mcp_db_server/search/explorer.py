"""
Catalog browsing and raw query passthrough
"""

import logging
from typing import List

from ..database.adapters import DatabaseAdapter
from ..database.models import Column, ForeignKey, Function, QueryResult, Table
from ..utils.validation import require_text
from .registry import run_lookup

logger = logging.getLogger(__name__)


class DatabaseExplorer:
    """List schemas, tables, columns, functions and foreign keys; run raw SQL"""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    def get_schemas(self) -> List[str]:
        return run_lookup(self.adapter, 'schemas')

    def get_tables(self, schema: str = 'public') -> List[Table]:
        return run_lookup(self.adapter, 'tables', schema)

    def get_table_columns(self, schema: str, table_name: str) -> List[Column]:
        return run_lookup(self.adapter, 'table_columns', schema, table_name)

    def get_table_definition(self, schema: str, table_name: str) -> str:
        """Generated CREATE TABLE statement, or an empty string for an unknown table"""
        definitions = run_lookup(self.adapter, 'table_definition', schema, table_name)
        return definitions[0] if definitions and definitions[0] else ''

    def get_functions(self, schema: str = 'public') -> List[Function]:
        return run_lookup(self.adapter, 'functions', schema)

    def get_function_definition(self, schema: str, function_name: str) -> str:
        definitions = run_lookup(self.adapter, 'function_definition', schema, function_name)
        return definitions[0] if definitions and definitions[0] else ''

    def get_table_foreign_keys(self, schema: str, table_name: str) -> List[ForeignKey]:
        return run_lookup(self.adapter, 'table_foreign_keys', schema, table_name)

    def execute_query(self, sql: str) -> QueryResult:
        """Run arbitrary SQL as given and name the type of each result column

        Any statement is accepted, including DDL and DML.
        """
        require_text(sql, 'SQL query')
        logger.info(f"Executing query: {sql}")
        result = self.adapter.execute_with_schema(sql)

        oids = sorted({column.type_oid for column in result.columns if column.type_oid is not None})
        if oids:
            names = {type_name.oid: type_name.type_name
                     for type_name in run_lookup(self.adapter, 'type_names', oids)}
            for column in result.columns:
                column.type = names.get(column.type_oid)
        return result
