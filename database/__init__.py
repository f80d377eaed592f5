"""Database module for the lifecycle store.

This module handles:
- Connection pool initialization against Postgres or CockroachDB
- Schema versioning through SchemaManager
- Pool lifecycle
"""

import logging
import ssl
from typing import Optional, Dict, Any
from urllib.parse import urlparse, parse_qs

import asyncpg
import backoff

from .exceptions import DatabaseError, DatabaseConnectionError, DatabaseSchemaError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.Pool] = None
_schema_manager: Optional[SchemaManager] = None

# Connection failures worth retrying
RETRYABLE_ERRORS = (
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.CannotConnectNowError,
    ConnectionRefusedError
)

def _get_ssl_context() -> ssl.SSLContext:
    """Create a verifying SSL context for hosted databases."""
    ssl_context = ssl.create_default_context()
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    return ssl_context

def _get_connection_kwargs(db_url: str) -> Dict[str, Any]:
    """Get connection kwargs from a database URL.

    SSL is on unless the URL says ``sslmode=disable``.

    Args:
        db_url: Database connection URL

    Returns:
        Dict of connection parameters
    """
    params = parse_qs(urlparse(db_url).query)
    sslmode = params.get('sslmode', ['require'])[0]

    kwargs: Dict[str, Any] = {
        'server_settings': {
            'statement_timeout': '60000',  # 1 minute
        }
    }
    if sslmode != 'disable':
        kwargs['ssl'] = _get_ssl_context()
    return kwargs

def _strip_query(db_url: str) -> str:
    # asyncpg would reparse sslmode and override our context
    return db_url.split('?', 1)[0]

@backoff.on_exception(backoff.expo, RETRYABLE_ERRORS, max_tries=5)
async def init_db(db_url: Optional[str] = None) -> None:
    """Initialize the connection pool and bring the schema up to date.

    Args:
        db_url: Optional database URL. If not provided, will use settings.

    Raises:
        DatabaseConnectionError: If no URL is configured
        DatabaseSchemaError: If migrations fail
    """
    global _pool, _schema_manager

    # Import here to avoid circular imports
    from config import settings_conf

    url = db_url or settings_conf.get('db_url')
    if not url:
        raise DatabaseConnectionError("Database URL not provided")

    host = urlparse(url).hostname
    logger.info(f"Connecting to database at {host}")

    try:
        _pool = await asyncpg.create_pool(
            _strip_query(url),
            min_size=1,
            max_size=10,
            max_inactive_connection_lifetime=300.0,
            command_timeout=60.0,
            **_get_connection_kwargs(url)
        )
    except RETRYABLE_ERRORS:
        raise
    except (asyncpg.exceptions.PostgresError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Failed to connect to database: {e}")

    _schema_manager = SchemaManager(_pool)
    try:
        await _schema_manager.initialize()
    except DatabaseSchemaError:
        await close()
        raise

async def get_pool() -> asyncpg.Pool:
    """Get the database connection pool, initializing it on first use.

    Returns:
        The connection pool

    Raises:
        DatabaseConnectionError: If the pool could not be created
    """
    if not _pool:
        await init_db()
    if not _pool:
        raise DatabaseConnectionError("Failed to initialize database pool")
    return _pool

async def close() -> None:
    """Close the database connection pool."""
    global _pool, _schema_manager

    if _pool:
        await _pool.close()
        _pool = None
        _schema_manager = None
        logger.info("Database pool closed")

__all__ = [
    'init_db', 'get_pool', 'close',
    'DatabaseError', 'DatabaseConnectionError', 'DatabaseSchemaError'
]
