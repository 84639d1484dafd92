import re
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient
from psycopg2 import sql as pgsql

from mcp_db_server.database.adapters import DatabaseAdapter, describe_statement
from mcp_db_server.database.models import QueryColumn, QueryResult
from mcp_db_server.exceptions import QueryError
from mcp_db_server.search.registry import SearchKind, get_kind, get_lookup
from mcp_db_server.server import create_app

# catalog expression -> key of the fixture row it reads
EXPRESSION_KEYS = {
    't.table_name': 'table_name',
    'c.column_name': 'column_name',
    'p.proname': 'routine_name',
    'p.prosrc': 'source_code',
    "CASE WHEN p.prokind = 'a' THEN NULL ELSE pg_get_functiondef(p.oid) END": 'definition',
    'tc.constraint_name': 'constraint_name',
    't.typname': 'type_name',
}

SCHEMA_KEYS = {
    SearchKind.TABLE: 'table_schema',
    SearchKind.COLUMN: 'table_schema',
    SearchKind.FUNCTION: 'routine_schema',
    SearchKind.CONSTRAINT: 'table_schema',
    SearchKind.DATA_TYPE: 'type_schema',
}

TABLES = {
    ('public', 'users'): [('id', 'integer'), ('email', 'character varying'), ('name', 'text')],
    ('public', 'orders'): [('id', 'integer'), ('user_id', 'integer'), ('note', 'text')],
    ('public', 'legacy_accounts'): [('User_Id', 'integer'), ('login', 'character varying')],
    ('public', 'audit_log'): [('id', 'integer'), ('payload', 'jsonb')],
    ('sales', 'customers'): [('id', 'integer'), ('contact', 'character')],
}

ROWS = {
    ('public', 'users'): [
        {'id': 1, 'email': 'john@example.com', 'name': 'John Smith'},
        {'id': 2, 'email': 'jane@example.com', 'name': 'Jane Doe'},
    ],
    ('public', 'orders'): [
        {'id': 10, 'user_id': 1, 'note': 'express delivery'},
    ],
    ('public', 'legacy_accounts'): [
        {'User_Id': 1, 'login': 'jdoe'},
    ],
    ('public', 'audit_log'): [
        {'id': 1, 'payload': '{"who": "john"}'},
    ],
    ('sales', 'customers'): [
        {'id': 1, 'contact': 'john'},
    ],
}

FUNCTIONS = [
    {
        'routine_name': 'get_user_email', 'routine_kind': 'f', 'routine_schema': 'public', 'data_type': 'text',
        'source_code': 'SELECT email FROM users WHERE id = $1',
        'definition': 'CREATE OR REPLACE FUNCTION public.get_user_email(integer) RETURNS text AS $$ ... $$',
    },
    {
        'routine_name': 'refresh_orders', 'routine_kind': 'p', 'routine_schema': 'public', 'data_type': None,
        'source_code': "UPDATE orders SET note = 'User refresh'",
        'definition': 'CREATE OR REPLACE PROCEDURE public.refresh_orders() AS $$ ... $$',
    },
    {
        'routine_name': 'sum_totals', 'routine_kind': 'a', 'routine_schema': 'public', 'data_type': 'numeric',
        'source_code': 'aggregate_dummy', 'definition': None,
    },
]

CONSTRAINTS = [
    {'constraint_name': 'users_pkey', 'constraint_type': 'PRIMARY KEY', 'table_name': 'users',
     'table_schema': 'public', 'column_name': 'id'},
    {'constraint_name': 'orders_user_id_fkey', 'constraint_type': 'FOREIGN KEY', 'table_name': 'orders',
     'table_schema': 'public', 'column_name': 'user_id'},
    {'constraint_name': 'orders_note_check', 'constraint_type': 'CHECK', 'table_name': 'orders',
     'table_schema': 'public', 'column_name': None},
]

DATA_TYPES = [
    {'type_name': 'mood', 'type_schema': 'public', 'type_category_code': 'E'},
    {'type_name': 'users', 'type_schema': 'public', 'type_category_code': 'C'},
    {'type_name': '_users', 'type_schema': 'public', 'type_category_code': 'A'},
]

TYPE_NAMES = {23: 'integer', 25: 'text', 1043: 'character varying'}


def like_to_regex(pattern: str, case_sensitive: bool) -> 're.Pattern':
    body = ''.join('.*' if ch == '%' else '.' if ch == '_' else re.escape(ch) for ch in pattern)
    return re.compile(f"^{body}$", re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE)


def identifiers_in(statement: pgsql.Composable) -> List[pgsql.Identifier]:
    """Identifier parts of a composed statement, in order"""
    if isinstance(statement, pgsql.Identifier):
        return [statement]
    found = []
    for part in getattr(statement, 'seq', []):
        found.extend(identifiers_in(part))
    return found


def column_rows() -> List[Dict[str, Any]]:
    rows = []
    for (schema, table), columns in TABLES.items():
        for position, (name, data_type) in enumerate(columns, start=1):
            rows.append({
                'column_name': name, 'table_name': table, 'table_schema': schema, 'data_type': data_type,
                'is_nullable': 'NO' if name in ('id', 'User_Id') else 'YES', 'column_default': None,
                'ordinal_position': position,
            })
    return rows


class FakeCatalog(DatabaseAdapter):
    """Answers the registry's catalog SQL from the fixture data above and records every call"""

    def __init__(self):
        self.calls: List[Any] = []
        self.failing_tables: set = set()
        self.raw_results: Dict[str, Any] = {}
        self.lookup_rows: Dict[str, List[Dict[str, Any]]] = {}
        self.connected = True

    @property
    def is_connected(self) -> bool:
        return self.connected

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.connected = False

    def execute(self, statement, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        params = list(params or [])
        self.calls.append((statement, params))
        if isinstance(statement, pgsql.Composable):
            return self._scan(statement, params)
        for name in ('schemas', 'tables', 'table_columns', 'table_definition', 'functions',
                     'function_definition', 'table_foreign_keys', 'type_names'):
            if statement == get_lookup(name).sql:
                return self._lookup(name, params)
        for kind in SearchKind:
            prefix = get_kind(kind).select.split('{details}')[0]
            if statement.startswith(prefix):
                return self._search(kind, statement, params)
        raise AssertionError(f"Unexpected SQL: {statement}")

    def execute_with_schema(self, statement: str) -> QueryResult:
        self.calls.append((statement, []))
        result = self.raw_results[statement]
        if isinstance(result, Exception):
            raise result
        return result

    def sql_calls(self) -> List[str]:
        return [describe_statement(statement) for statement, _ in self.calls]

    def _lookup(self, name: str, params: List[Any]) -> List[Dict[str, Any]]:
        if name in self.lookup_rows:
            return self.lookup_rows[name]
        if name == 'schemas':
            return [{'schema_name': schema} for schema in sorted({schema for schema, _ in TABLES})]
        if name == 'tables':
            return [{'table_name': table, 'table_schema': schema}
                    for schema, table in sorted(TABLES) if schema == params[0]]
        if name == 'table_columns':
            return [row for row in column_rows()
                    if row['table_schema'] == params[0] and row['table_name'] == params[1]]
        if name == 'type_names':
            return [{'oid': oid, 'type_name': TYPE_NAMES[oid]} for oid in params[0] if oid in TYPE_NAMES]
        return []

    def _search(self, kind: SearchKind, statement: str, params: List[Any]) -> List[Dict[str, Any]]:
        candidates = {
            SearchKind.TABLE: [{'table_name': t, 'table_schema': s} for s, t in sorted(TABLES)],
            SearchKind.COLUMN: column_rows(),
            SearchKind.FUNCTION: FUNCTIONS,
            SearchKind.CONSTRAINT: CONSTRAINTS,
            SearchKind.DATA_TYPE: DATA_TYPES,
        }[kind]
        schema, pattern = params[0], params[1]
        case_sensitive = ' ILIKE ' not in statement
        regex = like_to_regex(pattern, case_sensitive)
        keys = [key for expression, key in EXPRESSION_KEYS.items()
                if f"{expression} {'LIKE' if case_sensitive else 'ILIKE'} %s" in statement]
        assert len(keys) == len(params) - 1

        matches = []
        for row in candidates:
            if row[SCHEMA_KEYS[kind]] != schema:
                continue
            if any(row.get(key) is not None and regex.match(row[key]) for key in keys):
                match = dict(row)
                if kind == SearchKind.FUNCTION and 'AS definition' not in statement:
                    match.pop('definition')
                    match.pop('source_code')
                matches.append(match)
        return matches

    def _scan(self, statement: pgsql.Composable, params: List[Any]) -> List[Dict[str, Any]]:
        identifiers = identifiers_in(statement)
        schema, table = identifiers[0].strings
        if table in self.failing_tables:
            raise QueryError(f'cannot cast value in "{table}"', describe_statement(statement))
        columns = [identifier.strings[0] for identifier in identifiers[1:]]
        regex = like_to_regex(params[0], case_sensitive=False)
        limit = params[-1]
        matched = [row for row in ROWS.get((schema, table), [])
                   if any(regex.match(str(row[column])) for column in columns)]
        return matched[:limit]


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def client(catalog):
    app = create_app(catalog, enable_mcp=False)
    return TestClient(app)


@pytest.fixture
def select_one_result():
    return QueryResult(
        columns=[QueryColumn(name='?column?', type_oid=23)],
        rows=[{'?column?': 1}],
        affected_rows=1,
    )
