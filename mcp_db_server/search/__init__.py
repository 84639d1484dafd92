"""
Catalog search, row-content scanning and catalog browsing
"""

from .registry import SearchKind, MatchTarget, KindQuery, CatalogLookup, register_kind, get_kind, registered_kinds
from .engine import SearchEngine, SearchOptions, AdvancedSearchOptions
from .scanner import RowContentScanner
from .explorer import DatabaseExplorer

__all__ = [
    'SearchKind',
    'MatchTarget',
    'KindQuery',
    'CatalogLookup',
    'register_kind',
    'get_kind',
    'registered_kinds',
    'SearchEngine',
    'SearchOptions',
    'AdvancedSearchOptions',
    'RowContentScanner',
    'DatabaseExplorer'
]
