"""Database module for provisioning the application's PostgreSQL database.

This module handles:
- Creating the target database when the server does not have it yet
- Applying the schema to the target database
- Connection lifecycle for both stages

The two stages use separate connections: PostgreSQL cannot switch the
database of an open session, so the administrative connection used to create
the database is closed before the target database is connected to.
"""

import asyncio
import logging
import ssl
from typing import Optional, Dict, Any, Union

import asyncpg
import backoff

from .exceptions import DatabaseError, DatabaseConnectionError, DatabaseSchemaError
from .lib.ddl import create_database_sql
from .lib.models import SchemaDefinition
from .lib.schema_manager import SchemaManager, load_schema, parse_schema

logger = logging.getLogger(__name__)

# Errors worth another attempt when connect_attempts > 1
RETRYABLE_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.CannotConnectNowError,
)

# Errors meaning the server could not be reached or refused the session,
# e.g. bad password, unknown database, too many clients
CONNECTION_ERRORS = RETRYABLE_ERRORS + (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
)

def _get_ssl_context() -> ssl.SSLContext:
    """Create SSL context for servers that require TLS."""
    ssl_context = ssl.create_default_context()
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    ssl_context.check_hostname = True
    return ssl_context

def _get_connection_kwargs(settings: Dict[str, Any], database: str) -> Dict[str, Any]:
    """Get asyncpg.connect kwargs from settings.

    Args:
        settings: Validated settings from load_settings_conf
        database: Database to connect to

    Returns:
        Dict of connection parameters
    """
    kwargs = {
        'host': settings['db_host'],
        'port': settings['db_port'],
        'user': settings['db_user'],
        'password': settings.get('db_password'),
        'database': database,
        'timeout': settings.get('connect_timeout', 60.0),
        'command_timeout': settings.get('command_timeout', 60.0),
    }

    if settings.get('db_ssl'):
        kwargs['ssl'] = _get_ssl_context()

    return kwargs

async def connect(settings: Dict[str, Any], database: str) -> asyncpg.Connection:
    """Open a dedicated connection to a database.

    Args:
        settings: Validated settings
        database: Database to connect to

    Returns:
        Open connection, owned by the caller

    Raises:
        DatabaseConnectionError: If the server cannot be reached or rejects the login
    """
    attempt = backoff.on_exception(
        backoff.expo,
        RETRYABLE_ERRORS,
        max_tries=settings.get('connect_attempts', 1),
        logger=logger
    )(asyncpg.connect)

    try:
        conn = await attempt(**_get_connection_kwargs(settings, database))
    except CONNECTION_ERRORS as e:
        logger.error(f"Could not connect to {database}: {e}")
        raise DatabaseConnectionError(
            f"Could not connect to database {database} at "
            f"{settings['db_host']}:{settings['db_port']}: {e}"
        ) from e

    logger.info(f"Connected to {database}")
    return conn

async def create_database_if_not_exists(settings: Dict[str, Any], db_name: str) -> bool:
    """Create the database if it doesn't exist.

    Connects to the administrative database, never to db_name itself.

    Args:
        settings: Validated settings
        db_name: Name of the database to ensure

    Returns:
        True if the database was created, False if it already existed

    Raises:
        DatabaseConnectionError: If the server cannot be reached
        DatabaseError: If the catalog query or CREATE DATABASE fails
    """
    conn = await connect(settings, settings['admin_database'])

    try:
        exists = await conn.fetchval(
            'SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = $1)',
            db_name
        )

        if exists:
            logger.info(f"Database {db_name} already exists")
            return False

        await conn.execute(create_database_sql(db_name))
        logger.info(f"Database {db_name} created successfully")
        return True

    except asyncpg.exceptions.DuplicateDatabaseError:
        # Created by someone else between the check and the create
        logger.info(f"Database {db_name} already exists")
        return False
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        logger.error(f"Error creating database: {e}")
        raise DatabaseError(f"Failed to create database {db_name}: {e}") from e
    finally:
        await conn.close()

async def apply_schema(settings: Dict[str, Any], schema: SchemaDefinition) -> Dict[str, Any]:
    """Apply a schema to its target database and verify the result.

    Args:
        settings: Validated settings
        schema: Schema definition; schema.database must already exist

    Returns:
        Report from SchemaManager.apply

    Raises:
        DatabaseConnectionError: If the target database cannot be reached
        DatabaseSchemaError: If a statement fails or objects are missing afterwards
    """
    conn = await connect(settings, schema.database)

    try:
        manager = SchemaManager(conn, schema)
        report = await manager.apply()

        try:
            missing = await manager.verify()
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise DatabaseSchemaError(f"Failed to verify schema: {e}") from e

        if missing:
            raise DatabaseSchemaError(
                f"Schema incomplete after setup, missing: {', '.join(missing)}"
            )

        return report

    finally:
        await conn.close()

async def setup_database(settings: Optional[Dict[str, Any]] = None,
                         schema: Union[SchemaDefinition, Dict[str, Any], None] = None) -> Dict[str, Any]:
    """Ensure the database exists and holds the full schema.

    Args:
        settings: Optional validated settings. Loaded from settings.conf and
            the environment if not provided.
        schema: Optional schema definition or raw schema dict. The latest
            schema version is used if not provided.

    Returns:
        Report from SchemaManager.apply, with 'database_created' added

    Raises:
        DatabaseError: If either stage fails
        SettingsError: If settings cannot be loaded
    """
    if settings is None:
        # Import here so the database package works without a config on disk
        from config import load_settings_conf
        settings = load_settings_conf()

    if schema is None:
        schema = load_schema()
    elif isinstance(schema, dict):
        schema = parse_schema(schema)

    created = await create_database_if_not_exists(settings, schema.database)

    report = await apply_schema(settings, schema)
    report['database_created'] = created
    return report

# Export public interface
__all__ = [
    'connect',
    'create_database_if_not_exists',
    'apply_schema',
    'setup_database',
    'load_schema',
    'DatabaseError',
    'DatabaseConnectionError',
    'DatabaseSchemaError',
]
