"""
Request value checks and identifier allow-listing
"""

from typing import Collection, Optional

from psycopg2 import sql as pgsql

from ..exceptions import ValidationError


def require_text(value: Optional[str], field_name: str) -> str:
    """Reject a missing or blank required value"""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return value


def ensure_known_identifier(name: str, known: Collection[str], kind: str) -> str:
    """Accept an identifier only if the live catalog returned it"""
    if name not in known:
        raise ValidationError(f"Unknown {kind}: {name}")
    return name


def qualified_name(schema: str, name: str) -> pgsql.Identifier:
    """schema.name, each part quoted by the driver"""
    return pgsql.Identifier(schema, name)
