"""
JSON projection of records and row values
"""

import dataclasses
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi.encoders import jsonable_encoder

ROW_ENCODERS = {
    bytes: lambda value: value.hex(),
    memoryview: lambda value: value.tobytes().hex(),
}


def _fields_of(value: Any) -> Any:
    """Unpack records field by field; dataclasses.asdict would deep-copy row values"""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _fields_of(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {key: _fields_of(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_fields_of(item) for item in value]
    return value


def to_json(value: Any) -> Any:
    """Convert records, rows and driver values into JSON-compatible data"""
    return jsonable_encoder(_fields_of(value), custom_encoder=ROW_ENCODERS)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def search_envelope(keyword: str, schema: str, results: Any) -> Dict[str, Any]:
    """Common response body of the search operations"""
    return {
        'keyword': keyword,
        'schema': schema,
        'timestamp': utc_timestamp(),
        'results': to_json(results),
    }
