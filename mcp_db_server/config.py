"""
Environment configuration for the database connection and the HTTP listener
"""

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from urllib.parse import urlsplit

from dotenv import load_dotenv, find_dotenv
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DRIVER_NAME = 'postgresql+psycopg2'
DEFAULT_SERVER_URL = 'http://localhost:5004'


@dataclass
class DatabaseConfig:
    """Connection settings for one PostgreSQL instance"""
    url: URL
    pool_min: int = 1
    pool_max: int = 20
    command_timeout: int = 900
    connect_timeout: int = 900
    from_database_url: bool = False

    @property
    def safe_url(self) -> str:
        """URL with the password masked, for logs and banners"""
        return self.url.render_as_string(hide_password=True)


@dataclass
class ServerConfig:
    """Bind address of the HTTP listener"""
    host: str = 'localhost'
    port: int = 5004
    mcp_enabled: bool = True
    log_level: str = 'INFO'


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _get_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def parse_database_url(database_url: str) -> URL:
    """Parse a postgresql:// (or postgres://) URL and pin the psycopg2 driver"""
    try:
        url = make_url(database_url.strip())
    except ArgumentError as e:
        raise ConfigurationError(f"DATABASE_URL is not a valid URL: {e}")

    if url.drivername in ('postgres', 'postgresql', DRIVER_NAME):
        return url.set(drivername=DRIVER_NAME)
    raise ConfigurationError(f"DATABASE_URL must use the postgresql:// scheme, got {url.drivername}://")


def parse_server_url(server_url: str) -> Tuple[str, int]:
    """Split SERVER_URL into host and port; only the first of ';'-separated URLs is used"""
    first = server_url.split(';')[0].strip()
    if '://' not in first:
        first = f"http://{first}"
    parts = urlsplit(first)
    try:
        port = parts.port or 5004
    except ValueError:
        raise ConfigurationError(f"SERVER_URL has an invalid port: {server_url!r}")
    return parts.hostname or 'localhost', port


def load_database_config(environ: Mapping[str, str]) -> DatabaseConfig:
    """Build the connection settings; DATABASE_URL wins over the DB_* fields"""
    database_url = environ.get('DATABASE_URL')
    if database_url and database_url.strip():
        url = parse_database_url(database_url)
        from_database_url = True
    else:
        url = URL.create(
            DRIVER_NAME,
            username=environ.get('DB_USER') or 'postgres',
            password=environ.get('DB_PASSWORD') or None,
            host=environ.get('DB_HOST') or 'localhost',
            port=_get_int(environ, 'DB_PORT', 5432),
            database=environ.get('DB_NAME') or 'postgres',
        )
        from_database_url = False

    pool_min = _get_int(environ, 'DB_POOL_MIN', 1)
    pool_max = _get_int(environ, 'DB_POOL_MAX', 20)
    if pool_min < 1 or pool_max < pool_min:
        raise ConfigurationError(
            f"Pool bounds must satisfy 1 <= DB_POOL_MIN <= DB_POOL_MAX, got {pool_min} and {pool_max}"
        )

    return DatabaseConfig(
        url=url,
        pool_min=pool_min,
        pool_max=pool_max,
        command_timeout=_get_int(environ, 'DB_COMMAND_TIMEOUT', 900),
        connect_timeout=_get_int(environ, 'DB_CONNECT_TIMEOUT', 900),
        from_database_url=from_database_url,
    )


def load_server_config(environ: Mapping[str, str]) -> ServerConfig:
    """Build the listener settings"""
    host, port = parse_server_url(environ.get('SERVER_URL') or DEFAULT_SERVER_URL)
    return ServerConfig(
        host=host,
        port=port,
        mcp_enabled=_get_bool(environ, 'MCP_ENABLED', True),
        log_level=(environ.get('LOG_LEVEL') or 'INFO').upper(),
    )


def load_environment() -> Optional[str]:
    """Load a .env file from the working directory, if there is one"""
    env_file = find_dotenv(usecwd=True)
    if not env_file:
        logger.warning(".env file not found. Using system environment variables.")
        return None

    load_dotenv(env_file)
    logger.info(f"Loading environment variables from: {env_file}")
    return env_file


def load_config(environ: Optional[Mapping[str, str]] = None) -> Tuple[DatabaseConfig, ServerConfig]:
    """Load both configurations, reading .env first when no mapping is given"""
    if environ is None:
        load_environment()
        environ = os.environ
    return load_database_config(environ), load_server_config(environ)
