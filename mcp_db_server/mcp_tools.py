"""
MCP tool surface over the search engine, scanner and explorer
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from fastmcp import FastMCP

from .database.adapters import DatabaseAdapter
from .search.engine import AdvancedSearchOptions, SearchEngine, SearchOptions
from .search.explorer import DatabaseExplorer
from .search.scanner import DEFAULT_MAX_ROWS_PER_TABLE, RowContentScanner
from .utils.serialization import search_envelope, to_json

logger = logging.getLogger(__name__)

MCP_SERVER_NAME = "PostgreSQL Database MCP Server"
MCP_PATH = "/mcp"


class DatabaseTools:
    """Tools exposed to MCP clients; each returns the same JSON shape as its HTTP route"""

    def __init__(self, adapter: DatabaseAdapter):
        self.engine = SearchEngine(adapter)
        self.scanner = RowContentScanner(adapter)
        self.explorer = DatabaseExplorer(adapter)

    def search_metadata(self, keyword: str, schema: str = "public",
                        search_tables: bool = True, search_columns: bool = True,
                        search_functions: bool = True, search_constraints: bool = True,
                        search_data_types: bool = True) -> Dict[str, Any]:
        """Search for database objects: tables, columns, functions, procedures, constraints, and data types"""
        options = SearchOptions(search_tables, search_columns, search_functions,
                                search_constraints, search_data_types)
        result = self.engine.search_metadata(keyword, schema, options.kinds())
        return search_envelope(keyword, schema, result)

    def search_fulltext(self, keyword: str, schema: str = "public",
                        tables: Optional[List[str]] = None, columns: Optional[List[str]] = None,
                        max_rows_per_table: int = DEFAULT_MAX_ROWS_PER_TABLE) -> Dict[str, Any]:
        """Search for text within database table content"""
        results = self.scanner.scan_tables(keyword, schema, tables, columns, max_rows_per_table)
        return search_envelope(keyword, schema, results)

    def search_function_source(self, keyword: str, schema: str = "public") -> Dict[str, Any]:
        """Search within function and procedure source code"""
        results = self.engine.search_function_source(keyword, schema)
        return search_envelope(keyword, schema, results)

    def advanced_search(self, keyword: str, schema: str = "public",
                        search_in_names: bool = True, search_in_definitions: bool = True,
                        case_sensitive: bool = False,
                        object_types: Optional[List[str]] = None) -> Dict[str, Any]:
        """Advanced search with multiple criteria across all database objects"""
        options = AdvancedSearchOptions(
            search_in_names=search_in_names,
            search_in_definitions=search_in_definitions,
            case_sensitive=case_sensitive,
            object_types=object_types,
        )
        result = self.engine.advanced_search(keyword, schema, options)
        return search_envelope(keyword, schema, result)

    def list_tables(self, schema: str = "public") -> Dict[str, Any]:
        """List all tables in a schema"""
        tables = self.explorer.get_tables(schema)
        return {"schema": schema, "tables": to_json(tables), "count": len(tables)}

    def get_table_columns(self, table_name: str, schema: str = "public") -> Dict[str, Any]:
        """Get table structure and columns"""
        columns = self.explorer.get_table_columns(schema, table_name)
        return {"schema": schema, "table_name": table_name, "columns": to_json(columns), "count": len(columns)}

    def execute_query(self, sql: str) -> Dict[str, Any]:
        """Execute a custom SQL query and return results"""
        result = self.explorer.execute_query(sql)
        return {
            "columns": [{"name": column.name, "type": column.type} for column in result.columns],
            "rows": to_json(result.rows),
            "row_count": result.row_count,
        }

    def tool_functions(self) -> List[Callable[..., Dict[str, Any]]]:
        return [
            self.search_metadata,
            self.search_fulltext,
            self.search_function_source,
            self.advanced_search,
            self.list_tables,
            self.get_table_columns,
            self.execute_query,
        ]


def build_mcp_server(adapter: DatabaseAdapter) -> FastMCP:
    """FastMCP server with every database tool registered"""
    mcp = FastMCP(MCP_SERVER_NAME)
    tools = DatabaseTools(adapter)
    for function in tools.tool_functions():
        mcp.tool(function)
    logger.info(f"Registered {len(tools.tool_functions())} MCP tools")
    return mcp


def build_mcp_app(adapter: DatabaseAdapter):
    """Streamable HTTP app of the MCP server, served at /mcp once mounted"""
    return build_mcp_server(adapter).http_app(path=MCP_PATH)
