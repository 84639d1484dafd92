from mcp_db_server.database.models import QueryColumn, QueryResult
from mcp_db_server.exceptions import ConnectionLost, QueryError


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert "timestamp" in data
    assert data["server"].startswith("PostgreSQL Database MCP Server")


def test_health_reports_disconnected_pool(client, catalog):
    catalog.close()
    assert client.get("/health").json()["database"] == "disconnected"


def test_root_redirects_to_docs(client):
    response = client.get("/", follow_redirects=False)
    assert response.status_code in (302, 307)
    assert response.headers["location"] == "/docs"


def test_metadata_search_envelope(client):
    response = client.get("/search/metadata", params={"keyword": "user"})
    assert response.status_code == 200
    data = response.json()
    assert data["keyword"] == "user"
    assert data["schema"] == "public"
    assert "timestamp" in data
    results = data["results"]
    assert results["tables"] == [{"table_name": "users", "table_schema": "public"}]
    assert set(results) == {"keyword", "tables", "columns", "functions", "constraints", "data_types"}


def test_metadata_search_flags(client):
    response = client.get("/search/metadata", params={
        "keyword": "user",
        "searchTables": "false",
        "searchFunctions": "false",
    })
    results = response.json()["results"]
    assert results["tables"] == []
    assert results["functions"] == []
    assert len(results["columns"]) == 2


def test_metadata_search_requires_keyword(client, catalog):
    response = client.get("/search/metadata")
    assert response.status_code == 400
    assert response.json() == {"error": "Keyword is required"}
    assert catalog.calls == []


def test_fulltext_search(client):
    response = client.post("/search/fulltext", json={"keyword": "john@example.com", "schema": "public"})
    assert response.status_code == 200
    results = response.json()["results"]
    assert len(results) == 1
    assert results[0]["table_name"] == "users"
    assert results[0]["match_count"] == 1
    assert results[0]["matches"][0]["email"] == "john@example.com"


def test_fulltext_search_column_filter(client):
    response = client.post("/search/fulltext", json={"keyword": "john@example.com", "columns": ["name"]})
    assert response.status_code == 200
    assert response.json()["results"] == []


def test_fulltext_search_requires_keyword(client):
    response = client.post("/search/fulltext", json={"schema": "public"})
    assert response.status_code == 400
    assert response.json()["error"] == "Keyword is required"


def test_fulltext_search_unknown_schema(client):
    response = client.post("/search/fulltext", json={"keyword": "john", "schema": "nope"})
    assert response.status_code == 400
    assert response.json()["error"] == "Unknown schema: nope"


def test_fulltext_search_bad_row_cap(client):
    response = client.post("/search/fulltext", json={"keyword": "john", "max_rows_per_table": "lots"})
    assert response.status_code == 400
    assert "error" in response.json()


def test_function_source_search(client):
    response = client.get("/search/functions/source", params={"keyword": "UPDATE orders"})
    assert response.status_code == 200
    results = response.json()["results"]
    assert [f["routine_name"] for f in results] == ["refresh_orders"]
    assert results[0]["routine_type"] == "PROCEDURE"


def test_advanced_search(client):
    response = client.post("/search/advanced", json={
        "keyword": "User",
        "case_sensitive": True,
        "object_types": ["column"],
    })
    assert response.status_code == 200
    columns = response.json()["results"]["columns"]
    assert [c["column_name"] for c in columns] == ["User_Id"]


def test_advanced_search_unknown_object_type(client):
    response = client.post("/search/advanced", json={"keyword": "user", "object_types": ["index"]})
    assert response.status_code == 400
    assert response.json()["error"] == "Unknown object type: index"


def test_list_schemas(client):
    assert client.get("/schemas").json() == {"schemas": ["public", "sales"], "count": 2}


def test_list_tables(client):
    data = client.get("/tables", params={"schema": "sales"}).json()
    assert data["schema"] == "sales"
    assert data["tables"] == [{"table_name": "customers", "table_schema": "sales"}]
    assert data["count"] == 1


def test_table_columns(client):
    data = client.get("/tables/users").json()
    assert data["table_name"] == "users"
    assert data["count"] == 3
    assert data["columns"][0]["column_name"] == "id"
    assert data["columns"][0]["is_nullable"] is False


def test_table_definition(client, catalog):
    catalog.lookup_rows["table_definition"] = [{"definition": "CREATE TABLE public.users (\n  id integer\n);"}]
    data = client.get("/tables/users/definition").json()
    assert data["definition"].startswith("CREATE TABLE public.users")


def test_function_definition_for_unknown_function(client):
    data = client.get("/functions/missing").json()
    assert data == {"schema": "public", "function_name": "missing", "definition": ""}


def test_list_functions(client, catalog):
    catalog.lookup_rows["functions"] = [{
        "routine_name": "get_user_email", "routine_type": "FUNCTION",
        "routine_schema": "public", "data_type": "text",
    }]
    data = client.get("/functions").json()
    assert data["count"] == 1
    assert data["functions"][0]["routine_type"] == "FUNCTION"


def test_foreign_keys_empty(client):
    data = client.get("/tables/users/foreignkeys").json()
    assert data["foreign_keys"] == []
    assert data["count"] == 0


def test_execute_query(client, catalog):
    catalog.raw_results["SELECT 1"] = QueryResult(
        columns=[QueryColumn("?column?", 23)], rows=[{"?column?": 1}],
    )
    response = client.post("/query", json={"sql": "SELECT 1"})
    assert response.status_code == 200
    data = response.json()
    assert data["columns"] == [{"name": "?column?", "type": "integer"}]
    assert data["rows"] == [{"?column?": 1}]
    assert data["row_count"] == 1


def test_execute_query_renders_bytes_as_hex(client, catalog):
    catalog.raw_results["SELECT blob"] = QueryResult(
        columns=[QueryColumn("blob", 17)], rows=[{"blob": b"\x01\xff"}],
    )
    assert client.post("/query", json={"sql": "SELECT blob"}).json()["rows"] == [{"blob": "01ff"}]


def test_execute_query_requires_sql(client):
    response = client.post("/query", json={})
    assert response.status_code == 400
    assert response.json() == {"error": "SQL query is required"}


def test_execute_query_failure_echoes_query(client, catalog):
    catalog.raw_results["SELEC 1"] = QueryError('syntax error at or near "SELEC"', "SELEC 1", "42601")
    response = client.post("/query", json={"sql": "SELEC 1"})
    assert response.status_code == 500
    assert response.json() == {"error": 'syntax error at or near "SELEC"', "query": "SELEC 1"}


def test_lost_connection_during_catalog_query(client, catalog):
    def lost(*args, **kwargs):
        raise ConnectionLost("server closed the connection unexpectedly")

    catalog.execute = lost
    response = client.get("/schemas")
    assert response.status_code == 500
    assert response.json() == {"error": "server closed the connection unexpectedly"}


def test_fulltext_search_renders_binary_columns_as_hex(client, catalog):
    def scan_with_avatar(statement, params):
        return [{"id": 1, "email": "john@example.com", "avatar": memoryview(b"\x01\xff")}]

    catalog._scan = scan_with_avatar
    response = client.post("/search/fulltext", json={"keyword": "john", "tables": ["users"]})

    assert response.status_code == 200
    results = response.json()["results"]
    assert results[0]["matches"] == [{"id": 1, "email": "john@example.com", "avatar": "01ff"}]
