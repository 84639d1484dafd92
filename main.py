#!/usr/bin/env python3
"""
Main entry point for the PostgreSQL Database MCP Server
"""

from mcp_db_server.cli.main_cli import main

if __name__ == "__main__":
    main()
