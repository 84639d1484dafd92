"""
HTTP API for database introspection and search
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .database.adapters import DatabaseAdapter
from .exceptions import DatabaseError, QueryError, ValidationError
from .search.engine import AdvancedSearchOptions, SearchEngine, SearchOptions
from .search.explorer import DatabaseExplorer
from .search.scanner import DEFAULT_MAX_ROWS_PER_TABLE, RowContentScanner
from .utils.serialization import search_envelope, to_json, utc_timestamp
from .utils.validation import require_text

logger = logging.getLogger(__name__)

SERVER_NAME = "PostgreSQL Database MCP Server"

DESCRIPTION = """A Model Context Protocol (MCP) server for PostgreSQL database operations.

- **DB Metadata Search**: search tables, columns, functions, procedures, constraints and data types
- **DB Full-Text Search**: search within table data content
- **Function Source Search**: search within stored procedure/function code
- **Advanced Search**: combine multiple search criteria
- **Database Management**: query tables, schemas, functions, and execute SQL
"""


# Request Models
class QueryRequest(BaseModel):
    sql: Optional[str] = None


class FullTextSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    keyword: Optional[str] = None
    db_schema: Optional[str] = Field(default="public", alias="schema")
    tables: Optional[List[str]] = None
    columns: Optional[List[str]] = None
    max_rows_per_table: Optional[int] = DEFAULT_MAX_ROWS_PER_TABLE


class AdvancedSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    keyword: Optional[str] = None
    db_schema: Optional[str] = Field(default="public", alias="schema")
    search_in_names: bool = True
    search_in_definitions: bool = True
    search_in_comments: bool = True
    case_sensitive: bool = False
    object_types: Optional[List[str]] = None


# Dependencies
def get_adapter(request: Request) -> DatabaseAdapter:
    return request.app.state.adapter


def get_search_engine(adapter: DatabaseAdapter = Depends(get_adapter)) -> SearchEngine:
    return SearchEngine(adapter)


def get_scanner(adapter: DatabaseAdapter = Depends(get_adapter)) -> RowContentScanner:
    return RowContentScanner(adapter)


def get_explorer(adapter: DatabaseAdapter = Depends(get_adapter)) -> DatabaseExplorer:
    return DatabaseExplorer(adapter)


search_router = APIRouter(prefix="/search", tags=["Search"])
database_router = APIRouter(tags=["Database"])


@search_router.get("/metadata")
def search_metadata(
    keyword: Optional[str] = None,
    schema: str = "public",
    search_tables: bool = Query(True, alias="searchTables"),
    search_columns: bool = Query(True, alias="searchColumns"),
    search_functions: bool = Query(True, alias="searchFunctions"),
    search_constraints: bool = Query(True, alias="searchConstraints"),
    search_data_types: bool = Query(True, alias="searchDataTypes"),
    engine: SearchEngine = Depends(get_search_engine),
):
    """Search for database objects: tables, columns, functions, procedures, constraints, and data types"""
    keyword = require_text(keyword, "Keyword")
    options = SearchOptions(
        search_tables=search_tables,
        search_columns=search_columns,
        search_functions=search_functions,
        search_constraints=search_constraints,
        search_data_types=search_data_types,
    )
    result = engine.search_metadata(keyword, schema, options.kinds())
    return search_envelope(keyword, schema, result)


@search_router.post("/fulltext")
def search_fulltext(req: FullTextSearchRequest, scanner: RowContentScanner = Depends(get_scanner)):
    """Search for text within database table content"""
    keyword = require_text(req.keyword, "Keyword")
    schema = req.db_schema or "public"
    max_rows = req.max_rows_per_table if req.max_rows_per_table is not None else DEFAULT_MAX_ROWS_PER_TABLE
    results = scanner.scan_tables(keyword, schema, req.tables, req.columns, max_rows)
    return search_envelope(keyword, schema, results)


@search_router.get("/functions/source")
def search_function_source(
    keyword: Optional[str] = None,
    schema: str = "public",
    engine: SearchEngine = Depends(get_search_engine),
):
    """Search within function and procedure source code"""
    keyword = require_text(keyword, "Keyword")
    results = engine.search_function_source(keyword, schema)
    return search_envelope(keyword, schema, results)


@search_router.post("/advanced")
def advanced_search(req: AdvancedSearchRequest, engine: SearchEngine = Depends(get_search_engine)):
    """Advanced search with multiple criteria across all database objects"""
    keyword = require_text(req.keyword, "Keyword")
    schema = req.db_schema or "public"
    options = AdvancedSearchOptions(
        search_in_names=req.search_in_names,
        search_in_definitions=req.search_in_definitions,
        search_in_comments=req.search_in_comments,
        case_sensitive=req.case_sensitive,
        object_types=req.object_types,
    )
    result = engine.advanced_search(keyword, schema, options)
    return search_envelope(keyword, schema, result)


@database_router.get("/schemas")
def get_schemas(explorer: DatabaseExplorer = Depends(get_explorer)):
    """List all database schemas"""
    schemas = explorer.get_schemas()
    return {"schemas": schemas, "count": len(schemas)}


@database_router.get("/tables")
def get_tables(schema: str = "public", explorer: DatabaseExplorer = Depends(get_explorer)):
    """List all tables in a schema"""
    tables = explorer.get_tables(schema)
    return {"schema": schema, "tables": to_json(tables), "count": len(tables)}


@database_router.get("/tables/{table_name}")
def get_table_columns(table_name: str, schema: str = "public", explorer: DatabaseExplorer = Depends(get_explorer)):
    """Get table structure and columns"""
    columns = explorer.get_table_columns(schema, table_name)
    return {"schema": schema, "table_name": table_name, "columns": to_json(columns), "count": len(columns)}


@database_router.get("/tables/{table_name}/definition")
def get_table_definition(table_name: str, schema: str = "public", explorer: DatabaseExplorer = Depends(get_explorer)):
    """Get table CREATE statement"""
    definition = explorer.get_table_definition(schema, table_name)
    return {"schema": schema, "table_name": table_name, "definition": definition}


@database_router.get("/tables/{table_name}/foreignkeys")
def get_foreign_keys(table_name: str, schema: str = "public", explorer: DatabaseExplorer = Depends(get_explorer)):
    """Get foreign key constraints for a table"""
    foreign_keys = explorer.get_table_foreign_keys(schema, table_name)
    return {
        "schema": schema,
        "table_name": table_name,
        "foreign_keys": to_json(foreign_keys),
        "count": len(foreign_keys),
    }


@database_router.get("/functions")
def get_functions(schema: str = "public", explorer: DatabaseExplorer = Depends(get_explorer)):
    """List all functions and procedures in a schema"""
    functions = explorer.get_functions(schema)
    return {"schema": schema, "functions": to_json(functions), "count": len(functions)}


@database_router.get("/functions/{function_name}")
def get_function_definition(function_name: str, schema: str = "public",
                            explorer: DatabaseExplorer = Depends(get_explorer)):
    """Get function or procedure definition"""
    definition = explorer.get_function_definition(schema, function_name)
    return {"schema": schema, "function_name": function_name, "definition": definition}


@database_router.post("/query")
def execute_query(req: QueryRequest, explorer: DatabaseExplorer = Depends(get_explorer)):
    """Execute a custom SQL query and return results"""
    sql = require_text(req.sql, "SQL query")
    try:
        result = explorer.execute_query(sql)
    except QueryError as e:
        logger.error(f"Error executing query: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e), "query": sql})

    return {
        "columns": [{"name": column.name, "type": column.type} for column in result.columns],
        "rows": to_json(result.rows),
        "row_count": result.row_count,
        "affected_rows": result.affected_rows,
    }


@database_router.get("/health", tags=["Health"])
def health(adapter: DatabaseAdapter = Depends(get_adapter)):
    """Liveness of the server and its database pool"""
    return {
        "status": "healthy",
        "timestamp": utc_timestamp(),
        "database": "connected" if adapter.is_connected else "disconnected",
        "server": f"{SERVER_NAME} v{__version__}",
    }


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {details}"})

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError):
        logger.error(f"Error handling {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error handling {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app(adapter: DatabaseAdapter, enable_mcp: bool = True) -> FastAPI:
    """Build the application around an already configured adapter"""
    mcp_app = None
    if enable_mcp:
        from .mcp_tools import build_mcp_app
        mcp_app = build_mcp_app(adapter)

    app = FastAPI(
        title=f"{SERVER_NAME} API",
        version=__version__,
        description=DESCRIPTION,
        lifespan=mcp_app.lifespan if mcp_app is not None else None,
    )
    app.state.adapter = adapter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_exception_handlers(app)
    app.include_router(search_router)
    app.include_router(database_router)

    @app.get("/", include_in_schema=False)
    def root():
        return RedirectResponse(url="/docs")

    if mcp_app is not None:
        # mounted last so the routes above take precedence
        app.mount("/", mcp_app)

    return app
