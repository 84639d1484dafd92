"""
Process bootstrap: configuration, fail-fast connect, HTTP listener
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from ..config import load_config
from ..database.factory import DatabaseFactory
from ..exceptions import ConfigurationError
from ..server import SERVER_NAME, create_app
from ..utils.logger import setup_logger

logger = logging.getLogger(__name__)

LINE = "═" * 63


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=SERVER_NAME)
    parser.add_argument('--host', help='Bind host (overrides SERVER_URL)')
    parser.add_argument('--port', type=int, help='Bind port (overrides SERVER_URL)')
    return parser.parse_args(argv)


def print_endpoints(base_url: str, mcp_enabled: bool):
    """Print where everything is served"""
    print(LINE)
    print(f"🎯 {SERVER_NAME} is running!")
    print(LINE)
    print(f"📍 Server URL: {base_url}")
    print(f"📚 API Documentation: {base_url}/docs")
    print(f"💚 Health Check: {base_url}/health")
    if mcp_enabled:
        print(f"🤖 MCP over HTTP: {base_url}/mcp")
    print(LINE)
    print("\nAvailable Search Endpoints:")
    print("  🔍 GET  /search/metadata          - Search database objects")
    print("  📝 POST /search/fulltext          - Full-text search in data")
    print("  🔧 GET  /search/functions/source  - Search in function code")
    print("  🚀 POST /search/advanced          - Advanced multi-criteria search")
    print("\nDatabase Management Endpoints:")
    print("  📊 GET  /schemas                  - List all schemas")
    print("  📋 GET  /tables                   - List all tables")
    print("  🔢 GET  /tables/{name}            - Get table structure")
    print("  ⚙️  GET  /functions               - List all functions")
    print("  💻 POST /query                    - Execute SQL query")
    print(LINE + "\n")


def main(argv: Optional[List[str]] = None):
    """Start the server; exits with status 1 when the database is unreachable"""
    args = parse_args(argv)
    setup_logger()

    print(f"🚀 Starting {SERVER_NAME}...\n")
    try:
        database_config, server_config = load_config()
        setup_logger(server_config.log_level)
        adapter = DatabaseFactory.create_connector(database_config)
        print(f"🔌 Connecting to {database_config.safe_url}...")
        adapter.connect()
    except ConfigurationError as e:
        logger.error(f"Failed to connect to database: {e}")
        print(f"❌ Failed to connect to database: {e}\n")
        print("Please check your database configuration in environment variables:")
        for convention in DatabaseFactory.get_configuration_conventions():
            print(f"  - {convention}")
        sys.exit(1)

    print("✅ Database connection established successfully!\n")

    host = args.host or server_config.host
    port = args.port or server_config.port
    print_endpoints(f"http://{host}:{port}", server_config.mcp_enabled)

    try:
        app = create_app(adapter, enable_mcp=server_config.mcp_enabled)
        uvicorn.run(app, host=host, port=port, log_level=server_config.log_level.lower())
    finally:
        adapter.close()


if __name__ == "__main__":
    main()
