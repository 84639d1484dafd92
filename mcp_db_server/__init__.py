"""
PostgreSQL introspection and search server for AI coding assistants
"""

__version__ = "1.0.0"
