"""
Data models for catalog objects and query results
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional


# pg_proc.prokind
ROUTINE_KINDS = {
    'f': 'FUNCTION',
    'p': 'PROCEDURE',
    'a': 'AGGREGATE',
    'w': 'WINDOW',
}

# pg_type.typcategory
TYPE_CATEGORIES = {
    'A': 'Array',
    'B': 'Boolean',
    'C': 'Composite',
    'D': 'Date/Time',
    'E': 'Enum',
    'G': 'Geometric',
    'I': 'Network Address',
    'N': 'Numeric',
    'P': 'Pseudo-types',
    'R': 'Range',
    'S': 'String',
    'T': 'Timespan',
    'U': 'User-defined',
    'V': 'Bit-string',
    'X': 'Unknown',
}


def routine_kind_label(code: Optional[str]) -> str:
    """Map a pg_proc.prokind code to its routine type"""
    return ROUTINE_KINDS.get(code, 'FUNCTION')


def type_category_label(code: Optional[str]) -> str:
    """Map a pg_type.typcategory code to its category label"""
    return TYPE_CATEGORIES.get(code, 'Other')


@dataclass
class Table:
    """A table or view inside a schema"""
    table_name: str
    table_schema: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Table':
        return cls(table_name=row['table_name'], table_schema=row['table_schema'])


@dataclass
class Column:
    """A column of a table"""
    column_name: str
    data_type: str
    is_nullable: bool
    column_default: Optional[str]
    ordinal_position: int
    table_name: Optional[str] = None
    table_schema: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Column':
        return cls(
            column_name=row['column_name'],
            data_type=row['data_type'],
            is_nullable=row['is_nullable'] == 'YES',
            column_default=row['column_default'],
            ordinal_position=int(row['ordinal_position']),
            table_name=row.get('table_name'),
            table_schema=row.get('table_schema'),
        )


@dataclass
class Function:
    """A function, procedure, aggregate or window function

    definition and source_code are only filled by searches that ask for them.
    """
    routine_name: str
    routine_type: str
    routine_schema: str
    data_type: Optional[str] = None
    definition: Optional[str] = None
    source_code: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Function':
        if 'routine_kind' in row:
            routine_type = routine_kind_label(row['routine_kind'])
        else:
            routine_type = row['routine_type']
        return cls(
            routine_name=row['routine_name'],
            routine_type=routine_type,
            routine_schema=row['routine_schema'],
            data_type=row['data_type'],
            definition=row.get('definition'),
            source_code=row.get('source_code'),
        )


@dataclass
class Constraint:
    """A table constraint; one record per participating column"""
    constraint_name: str
    constraint_type: str
    table_name: str
    table_schema: str
    column_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Constraint':
        return cls(
            constraint_name=row['constraint_name'],
            constraint_type=row['constraint_type'],
            table_name=row['table_name'],
            table_schema=row['table_schema'],
            column_name=row['column_name'],
        )


@dataclass
class DataType:
    """A type registered in pg_type"""
    type_name: str
    type_schema: str
    type_category: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'DataType':
        return cls(
            type_name=row['type_name'],
            type_schema=row['type_schema'],
            type_category=type_category_label(row['type_category_code']),
        )


@dataclass
class ForeignKey:
    """One (constraint, column) pair of a foreign key"""
    constraint_name: str
    column_name: str
    referenced_table_schema: str
    referenced_table_name: str
    referenced_column_name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ForeignKey':
        return cls(
            constraint_name=row['constraint_name'],
            column_name=row['column_name'],
            referenced_table_schema=row['referenced_table_schema'],
            referenced_table_name=row['referenced_table_name'],
            referenced_column_name=row['referenced_column_name'],
        )


@dataclass
class TypeName:
    """Resolved name of a type OID"""
    oid: int
    type_name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'TypeName':
        return cls(oid=int(row['oid']), type_name=row['type_name'])


@dataclass
class SearchResult:
    """Metadata search result grouped by object kind"""
    keyword: str
    tables: List[Table] = field(default_factory=list)
    columns: List[Column] = field(default_factory=list)
    functions: List[Function] = field(default_factory=list)
    constraints: List[Constraint] = field(default_factory=list)
    data_types: List[DataType] = field(default_factory=list)


@dataclass
class FullTextSearchResult:
    """Rows of one table whose text columns contain the keyword"""
    table_name: str
    table_schema: str
    matches: List[Dict[str, Any]] = field(default_factory=list)
    match_count: int = 0


@dataclass
class QueryColumn:
    """A result column of a raw query"""
    name: str
    type_oid: Optional[int] = None
    type: Optional[str] = None


@dataclass
class QueryResult:
    """Result of a raw query"""
    columns: List[QueryColumn] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    affected_rows: Optional[int] = None

    @property
    def row_count(self) -> int:
        return len(self.rows)
