"""
Catalog query registry

Every catalog query the server runs is declared here, either as a search kind
(matched against a keyword) or as a lookup (browsing by exact schema/name).
Adding a searchable object kind means registering one more KindQuery.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple, Type

from ..database.adapters import DatabaseAdapter
from ..database.models import (
    Table, Column, Function, Constraint, DataType, ForeignKey, TypeName,
)
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

CASE_INSENSITIVE = 'ILIKE'
CASE_SENSITIVE = 'LIKE'
MATCH_OPERATORS = (CASE_INSENSITIVE, CASE_SENSITIVE)


class SearchKind(str, Enum):
    """Searchable object kinds"""
    TABLE = 'table'
    COLUMN = 'column'
    FUNCTION = 'function'
    CONSTRAINT = 'constraint'
    DATA_TYPE = 'data_type'


class MatchTarget(str, Enum):
    """What part of an object a keyword is matched against"""
    NAME = 'name'
    DEFINITION = 'definition'
    SOURCE = 'source'


class BoundQuery(NamedTuple):
    sql: str
    params: List[Any]


def project_rows(rows: Sequence[Dict[str, Any]], record: Type) -> List[Any]:
    """Decode catalog rows into records, dropping rows that lack an expected column"""
    records = []
    for row in rows:
        try:
            records.append(record.from_row(row))
        except KeyError as e:
            logger.warning(f"Dropping {record.__name__} row without column {e}: {row}")
    return records


@dataclass(frozen=True)
class KindQuery:
    """Catalog query and projection for one searchable object kind"""
    kind: SearchKind
    result_field: str
    record: Type
    select: str
    schema_column: str
    order_by: str
    match_columns: Dict[MatchTarget, Tuple[str, ...]]
    detail_select: str = ''
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    def supports(self, target: MatchTarget) -> bool:
        return bool(self.match_columns.get(target))

    def build(self, schema: str, pattern: str, targets: Sequence[MatchTarget],
              operator: str = CASE_INSENSITIVE, with_details: bool = False) -> Optional[BoundQuery]:
        """SQL and positional parameters for this kind, or None when no target applies"""
        if operator not in MATCH_OPERATORS:
            raise ValueError(f"Unsupported match operator: {operator}")

        expressions: List[str] = []
        for target in targets:
            for expression in self.match_columns.get(target, ()):
                if expression not in expressions:
                    expressions.append(expression)
        if not expressions:
            return None

        predicates = ' OR '.join(f"{expression} {operator} %s" for expression in expressions)
        select = self.select.format(details=self.detail_select if with_details else '')
        sql = f"{select}\nWHERE {self.schema_column} = %s AND ({predicates})\nORDER BY {self.order_by}"
        return BoundQuery(sql, [schema] + [pattern] * len(expressions))

    def run(self, adapter: DatabaseAdapter, schema: str, pattern: str, targets: Sequence[MatchTarget],
            operator: str = CASE_INSENSITIVE, with_details: bool = False) -> List[Any]:
        query = self.build(schema, pattern, targets, operator, with_details)
        if query is None:
            return []
        return project_rows(adapter.execute(query.sql, query.params), self.record)


@dataclass(frozen=True)
class CatalogLookup:
    """Exact-match catalog query used for browsing

    Rows are projected into `record`, or reduced to `column` when no record applies.
    """
    name: str
    sql: str
    record: Optional[Type] = None
    column: Optional[str] = None


_FUNCTION_DEFINITION = "CASE WHEN p.prokind = 'a' THEN NULL ELSE pg_get_functiondef(p.oid) END"

_KINDS: Dict[SearchKind, KindQuery] = {}
_LOOKUPS: Dict[str, CatalogLookup] = {}


def register_kind(entry: KindQuery) -> KindQuery:
    """Add or replace the registry entry for a kind"""
    _KINDS[entry.kind] = entry
    return entry


def get_kind(kind: SearchKind) -> KindQuery:
    return _KINDS[kind]


def registered_kinds() -> List[SearchKind]:
    return list(_KINDS)


def resolve_kind(name: str) -> SearchKind:
    """Map a caller-supplied object type name (or alias) to its kind"""
    wanted = name.strip().lower()
    for entry in _KINDS.values():
        if wanted == entry.kind.value or wanted in entry.aliases:
            return entry.kind
    raise ValidationError(f"Unknown object type: {name}")


def register_lookup(lookup: CatalogLookup) -> CatalogLookup:
    _LOOKUPS[lookup.name] = lookup
    return lookup


def get_lookup(name: str) -> CatalogLookup:
    return _LOOKUPS[name]


def run_lookup(adapter: DatabaseAdapter, name: str, *params: Any) -> List[Any]:
    """Execute a registered lookup and project its rows"""
    lookup = _LOOKUPS[name]
    rows = adapter.execute(lookup.sql, list(params))
    if lookup.record is not None:
        return project_rows(rows, lookup.record)
    return [row[lookup.column] for row in rows]


register_kind(KindQuery(
    kind=SearchKind.TABLE,
    result_field='tables',
    record=Table,
    select="""SELECT DISTINCT t.table_name, t.table_schema{details}
FROM information_schema.tables t""",
    schema_column='t.table_schema',
    order_by='t.table_name',
    match_columns={MatchTarget.NAME: ('t.table_name',)},
    aliases=('tables',),
))

register_kind(KindQuery(
    kind=SearchKind.COLUMN,
    result_field='columns',
    record=Column,
    select="""SELECT DISTINCT
    c.column_name,
    c.table_name,
    c.table_schema,
    c.data_type,
    c.is_nullable,
    c.column_default,
    c.ordinal_position{details}
FROM information_schema.columns c""",
    schema_column='c.table_schema',
    order_by='c.table_name, c.ordinal_position',
    match_columns={MatchTarget.NAME: ('c.column_name',)},
    aliases=('columns',),
))

register_kind(KindQuery(
    kind=SearchKind.FUNCTION,
    result_field='functions',
    record=Function,
    select="""SELECT
    p.proname AS routine_name,
    p.prokind AS routine_kind,
    n.nspname AS routine_schema,
    pg_catalog.pg_get_function_result(p.oid) AS data_type{details}
FROM pg_proc p
JOIN pg_namespace n ON p.pronamespace = n.oid""",
    schema_column='n.nspname',
    order_by='p.proname',
    match_columns={
        MatchTarget.NAME: ('p.proname',),
        MatchTarget.DEFINITION: ('p.prosrc',),
        MatchTarget.SOURCE: ('p.prosrc', _FUNCTION_DEFINITION),
    },
    detail_select=f""",
    {_FUNCTION_DEFINITION} AS definition,
    p.prosrc AS source_code""",
    aliases=('functions', 'procedure', 'procedures', 'routine', 'routines'),
))

register_kind(KindQuery(
    kind=SearchKind.CONSTRAINT,
    result_field='constraints',
    record=Constraint,
    select="""SELECT
    tc.constraint_name,
    tc.constraint_type,
    tc.table_name,
    tc.table_schema,
    kcu.column_name{details}
FROM information_schema.table_constraints tc
LEFT JOIN information_schema.key_column_usage kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema""",
    schema_column='tc.table_schema',
    order_by='tc.constraint_name',
    match_columns={MatchTarget.NAME: ('tc.constraint_name',)},
    aliases=('constraints',),
))

register_kind(KindQuery(
    kind=SearchKind.DATA_TYPE,
    result_field='data_types',
    record=DataType,
    select="""SELECT
    t.typname AS type_name,
    n.nspname AS type_schema,
    t.typcategory AS type_category_code{details}
FROM pg_type t
JOIN pg_namespace n ON t.typnamespace = n.oid""",
    schema_column='n.nspname',
    order_by='t.typname',
    match_columns={MatchTarget.NAME: ('t.typname',)},
    aliases=('data_types', 'datatype', 'type', 'types'),
))


register_lookup(CatalogLookup(
    name='schemas',
    sql="""SELECT schema_name
FROM information_schema.schemata
WHERE schema_name NOT IN ('pg_catalog', 'information_schema')
ORDER BY schema_name""",
    column='schema_name',
))

register_lookup(CatalogLookup(
    name='tables',
    sql="""SELECT table_name, table_schema
FROM information_schema.tables
WHERE table_schema = %s
ORDER BY table_name""",
    record=Table,
))

register_lookup(CatalogLookup(
    name='table_columns',
    sql="""SELECT column_name, table_name, table_schema, data_type, is_nullable, column_default, ordinal_position
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position""",
    record=Column,
))

register_lookup(CatalogLookup(
    name='table_definition',
    sql="""SELECT
    'CREATE TABLE ' || quote_ident(table_schema) || '.' || quote_ident(table_name) || E' (\\n' ||
    string_agg(
        '  ' || quote_ident(column_name) || ' ' || data_type ||
        CASE WHEN is_nullable = 'NO' THEN ' NOT NULL' ELSE '' END,
        E',\\n' ORDER BY ordinal_position
    ) || E'\\n);' AS definition
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
GROUP BY table_schema, table_name""",
    column='definition',
))

register_lookup(CatalogLookup(
    name='functions',
    sql="""SELECT routine_name, routine_type, routine_schema, data_type
FROM information_schema.routines
WHERE routine_schema = %s
ORDER BY routine_name""",
    record=Function,
))

register_lookup(CatalogLookup(
    name='function_definition',
    sql=f"""SELECT {_FUNCTION_DEFINITION} AS definition
FROM pg_proc p
JOIN pg_namespace n ON p.pronamespace = n.oid
WHERE n.nspname = %s AND p.proname = %s
ORDER BY p.oid
LIMIT 1""",
    column='definition',
))

register_lookup(CatalogLookup(
    name='table_foreign_keys',
    sql="""SELECT
    tc.constraint_name,
    kcu.column_name,
    ccu.table_schema AS referenced_table_schema,
    ccu.table_name AS referenced_table_name,
    ccu.column_name AS referenced_column_name
FROM information_schema.table_constraints AS tc
JOIN information_schema.key_column_usage AS kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema
JOIN information_schema.constraint_column_usage AS ccu
    ON ccu.constraint_name = tc.constraint_name
    AND ccu.constraint_schema = tc.constraint_schema
WHERE tc.constraint_type = 'FOREIGN KEY' AND tc.table_schema = %s AND tc.table_name = %s
ORDER BY tc.constraint_name, kcu.ordinal_position""",
    record=ForeignKey,
))

register_lookup(CatalogLookup(
    name='type_names',
    sql="""SELECT t.oid, format_type(t.oid, NULL) AS type_name
FROM pg_type t
WHERE t.oid = ANY(%s::oid[])""",
    record=TypeName,
))
