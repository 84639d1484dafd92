"""
Search engine over the catalog query registry
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..database.adapters import DatabaseAdapter
from ..database.models import Function, SearchResult
from ..utils.validation import require_text
from .registry import (
    CASE_INSENSITIVE, CASE_SENSITIVE, MatchTarget, SearchKind,
    get_kind, registered_kinds, resolve_kind,
)

logger = logging.getLogger(__name__)


def like_pattern(keyword: str) -> str:
    """Substring pattern for LIKE/ILIKE"""
    return f"%{keyword}%"


@dataclass
class SearchOptions:
    """Which object kinds a metadata search covers"""
    search_tables: bool = True
    search_columns: bool = True
    search_functions: bool = True
    search_constraints: bool = True
    search_data_types: bool = True

    def kinds(self) -> List[SearchKind]:
        flags = {
            SearchKind.TABLE: self.search_tables,
            SearchKind.COLUMN: self.search_columns,
            SearchKind.FUNCTION: self.search_functions,
            SearchKind.CONSTRAINT: self.search_constraints,
            SearchKind.DATA_TYPE: self.search_data_types,
        }
        return [kind for kind, enabled in flags.items() if enabled]


@dataclass
class AdvancedSearchOptions:
    """Criteria of an advanced search"""
    search_in_names: bool = True
    search_in_definitions: bool = True
    # accepted for compatibility; comments are not searched
    search_in_comments: bool = True
    case_sensitive: bool = False
    object_types: Optional[List[str]] = None

    def kinds(self) -> List[SearchKind]:
        """Kinds named in object_types, or every registered kind when none are given"""
        if not self.object_types:
            return registered_kinds()
        kinds: List[SearchKind] = []
        for name in self.object_types:
            kind = resolve_kind(name)
            if kind not in kinds:
                kinds.append(kind)
        return kinds

    def targets(self) -> List[MatchTarget]:
        targets = []
        if self.search_in_names:
            targets.append(MatchTarget.NAME)
        if self.search_in_definitions:
            targets.append(MatchTarget.DEFINITION)
        return targets


class SearchEngine:
    """Run registry entries for a keyword and merge the results by kind"""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    def search_metadata(self, keyword: str, schema: str = 'public',
                        kinds: Optional[Iterable[SearchKind]] = None) -> SearchResult:
        """Case-insensitive name search over the enabled kinds; disabled kinds stay empty"""
        require_text(keyword, 'Keyword')
        enabled = registered_kinds() if kinds is None else list(kinds)
        logger.info(f"Searching metadata for keyword: {keyword} in schema: {schema} ({len(enabled)} kinds)")

        result = SearchResult(keyword=keyword)
        pattern = like_pattern(keyword)
        for kind in enabled:
            entry = get_kind(kind)
            records = entry.run(self.adapter, schema, pattern, [MatchTarget.NAME], CASE_INSENSITIVE)
            setattr(result, entry.result_field, records)
        return result

    def advanced_search(self, keyword: str, schema: str = 'public',
                        options: Optional[AdvancedSearchOptions] = None) -> SearchResult:
        """Search names and/or definitions with an optional case-sensitive match"""
        require_text(keyword, 'Keyword')
        options = options or AdvancedSearchOptions()
        kinds = options.kinds()
        targets = options.targets()
        operator = CASE_SENSITIVE if options.case_sensitive else CASE_INSENSITIVE
        logger.info(
            f"Advanced search for: {keyword} in schema: {schema} "
            f"(operator={operator}, targets={[t.value for t in targets]}, kinds={[k.value for k in kinds]})"
        )

        result = SearchResult(keyword=keyword)
        pattern = like_pattern(keyword)
        for kind in kinds:
            entry = get_kind(kind)
            with_details = options.search_in_definitions and entry.supports(MatchTarget.DEFINITION)
            records = entry.run(self.adapter, schema, pattern, targets, operator, with_details)
            setattr(result, entry.result_field, records)
        return result

    def search_function_source(self, keyword: str, schema: str = 'public') -> List[Function]:
        """Functions whose source body or full definition contains the keyword"""
        require_text(keyword, 'Keyword')
        logger.info(f"Searching function source for: {keyword} in schema: {schema}")

        entry = get_kind(SearchKind.FUNCTION)
        return entry.run(self.adapter, schema, like_pattern(keyword), [MatchTarget.SOURCE],
                         CASE_INSENSITIVE, with_details=True)
