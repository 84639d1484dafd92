"""
Utility functions and helper classes
"""

from .logger import setup_logger
from .serialization import to_json, search_envelope
from .validation import require_text, ensure_known_identifier, qualified_name

__all__ = [
    'setup_logger',
    'to_json',
    'search_envelope',
    'require_text',
    'ensure_known_identifier',
    'qualified_name'
]
