"""Database schema management module.

This module loads schema definitions from the schema directory and applies
them to a connection. Tables, indexes, functions and triggers are applied in
dependency order and every step is safe to repeat against a database that
already holds some or all of the objects.
"""
import importlib
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

from pydantic import ValidationError

from ..exceptions import DatabaseSchemaError
from .ddl import (
    TRIGGER_TYPE_MASK,
    create_function_sql,
    create_index_sql,
    create_table_sql,
    create_trigger_sql,
    drop_trigger_sql,
    quote_identifier,
    trigger_type,
)
from .models import SchemaDefinition, TriggerDefinition

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent.parent / 'schema'

EXISTING_TABLES_SQL = '''
    SELECT tablename
    FROM pg_tables
    WHERE schemaname = current_schema()
'''

EXISTING_INDEXES_SQL = '''
    SELECT indexname
    FROM pg_indexes
    WHERE schemaname = current_schema()
'''

EXISTING_FUNCTIONS_SQL = '''
    SELECT p.proname
    FROM pg_proc p
    JOIN pg_namespace n ON n.oid = p.pronamespace
    WHERE n.nspname = current_schema()
'''

# Triggers calling one of our functions, or living on one of our tables
EXISTING_TRIGGERS_SQL = '''
    SELECT
        t.tgname AS trigger_name,
        c.relname AS table_name,
        p.proname AS function_name,
        t.tgtype::int AS tgtype
    FROM pg_trigger t
    JOIN pg_class c ON c.oid = t.tgrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_proc p ON p.oid = t.tgfoid
    WHERE NOT t.tgisinternal
    AND n.nspname = current_schema()
    AND (p.proname = ANY($1::text[]) OR c.relname = ANY($2::text[]))
'''


def parse_schema(raw: Dict[str, Any]) -> SchemaDefinition:
    """Validate a raw schema dict.

    Raises:
        DatabaseSchemaError: If the definition is invalid
    """
    try:
        return SchemaDefinition.model_validate(raw)
    except ValidationError as e:
        raise DatabaseSchemaError(f"Invalid schema definition: {e}") from e


def load_schema_files(schema_dir: Path = SCHEMA_DIR) -> Dict[int, SchemaDefinition]:
    """Load all schema version files.

    Args:
        schema_dir: Directory containing vX.py schema files

    Returns:
        Dict mapping version numbers to validated schema definitions

    Raises:
        DatabaseSchemaError: If a schema file is missing its definition,
            declares the wrong version or fails validation
    """
    schema_files = {}
    package = __package__.rsplit('.', 1)[0]

    if not schema_dir.exists():
        return schema_files

    for file in schema_dir.glob('v*.py'):
        try:
            version = int(file.stem[1:])  # Extract number from vX.py
        except ValueError:
            logger.warning(f"Invalid schema filename: {file}")
            continue

        module = importlib.import_module(f"{package}.schema.{file.stem}")
        if not hasattr(module, 'schema'):
            raise DatabaseSchemaError(f"Schema file {file} missing 'schema' definition")

        schema = parse_schema(module.schema)
        if schema.version != version:
            raise DatabaseSchemaError(
                f"Schema version mismatch in {file}: "
                f"Expected v{version}, got v{schema.version}"
            )

        schema_files[version] = schema

    return dict(sorted(schema_files.items()))


def load_schema(version: Optional[int] = None, schema_dir: Path = SCHEMA_DIR) -> SchemaDefinition:
    """Load a schema version, the latest one by default."""
    schema_files = load_schema_files(schema_dir)
    if not schema_files:
        raise DatabaseSchemaError("No valid schema files found in schema directory")

    if version is None:
        version = max(schema_files)
    if version not in schema_files:
        raise DatabaseSchemaError(f"Schema version {version} not found")
    return schema_files[version]


class SchemaManager:
    """Applies a schema definition to a connected database."""

    def __init__(self, conn, schema: SchemaDefinition) -> None:
        """Initialize schema manager.

        Args:
            conn: Connection bound to the target database
            schema: Desired schema definition
        """
        self.conn = conn
        self.schema = schema

    async def apply(self) -> Dict[str, Any]:
        """Apply the full schema in one pass.

        Each batch (tables, indexes, functions, triggers) runs in its own
        transaction and completes before the next one starts.

        Returns:
            Report of what was created, replaced, dropped or left untouched

        Raises:
            DatabaseSchemaError: If any statement fails
        """
        report = {}
        try:
            report.update(await self._create_tables())
            logger.info("All tables created successfully")

            report['indexes'] = await self._create_indexes()
            logger.info("Indexes created successfully")

            report['functions'] = await self._create_functions()
            logger.info("Functions created successfully")

            report['triggers'] = await self._reconcile_triggers()
            logger.info("Triggers created successfully")

        except DatabaseSchemaError:
            raise
        except Exception as e:
            logger.error(f"Schema application failed: {e}")
            raise DatabaseSchemaError(f"Failed to apply schema: {e}") from e

        return report

    async def verify(self) -> List[str]:
        """List schema objects missing from the database.

        Returns:
            Descriptions of missing objects, empty when the schema is complete
        """
        missing = []

        tables = {row['tablename'] for row in await self.conn.fetch(EXISTING_TABLES_SQL)}
        for table in self.schema.tables:
            if table.name.lower() not in tables:
                missing.append(f"table {table.name}")

        indexes = {row['indexname'] for row in await self.conn.fetch(EXISTING_INDEXES_SQL)}
        for table, index in self.schema.indexes:
            if index.name.lower() not in indexes:
                missing.append(f"index {index.name} on {table.name}")

        functions = {row['proname'] for row in await self.conn.fetch(EXISTING_FUNCTIONS_SQL)}
        for function in self.schema.functions:
            if function.name.lower() not in functions:
                missing.append(f"function {function.name}")

        existing = await self._existing_triggers()
        for trigger in self.schema.triggers:
            row = existing.get(trigger.key)
            if row is None or not self._trigger_matches(row, trigger):
                missing.append(f"trigger {trigger.name} on {trigger.table}")

        return missing

    async def _create_tables(self) -> Dict[str, List[str]]:
        rows = await self.conn.fetch(EXISTING_TABLES_SQL)
        existing = {row['tablename'] for row in rows}

        created = []
        skipped = []
        async with self.conn.transaction():
            for table in self.schema.tables:
                await self.conn.execute(create_table_sql(table))
                if table.name.lower() in existing:
                    skipped.append(table.name)
                    logger.debug(f"Table {table.name} already exists")
                else:
                    created.append(table.name)
                    logger.info(f"Created table {table.name}")

        return {'tables_created': created, 'tables_existing': skipped}

    async def _create_indexes(self) -> List[str]:
        names = []
        async with self.conn.transaction():
            for table, index in self.schema.indexes:
                await self.conn.execute(create_index_sql(table, index))
                names.append(index.name)
                logger.debug(f"Ensured index {index.name} on {table.name}")
        return names

    async def _create_functions(self) -> List[str]:
        names = []
        async with self.conn.transaction():
            for function in self.schema.functions:
                await self.conn.execute(create_function_sql(function))
                names.append(function.name)
                logger.debug(f"Created function {function.name}")
        return names

    async def _existing_triggers(self) -> Dict[tuple, Any]:
        functions = [function.name.lower() for function in self.schema.functions]
        tables = [table.name.lower() for table in self.schema.tables]
        rows = await self.conn.fetch(EXISTING_TRIGGERS_SQL, functions, tables)
        return {(row['table_name'], row['trigger_name']): row for row in rows}

    @staticmethod
    def _trigger_matches(row, trigger: TriggerDefinition) -> bool:
        return (
            row['function_name'] == trigger.function.lower()
            and row['tgtype'] & TRIGGER_TYPE_MASK == trigger_type(trigger)
        )

    async def _reconcile_triggers(self) -> Dict[str, List[str]]:
        """Bring trigger bindings in line with the schema.

        Matching bindings are left alone, stale ones are replaced and
        bindings to our functions that the schema no longer lists are
        dropped. Everything happens in one transaction so other sessions
        never observe a table without its trigger.
        """
        existing = await self._existing_triggers()
        desired = {trigger.key: trigger for trigger in self.schema.triggers}
        managed = {function.name.lower() for function in self.schema.functions}

        result = {'created': [], 'replaced': [], 'dropped': [], 'unchanged': []}
        async with self.conn.transaction():
            for key, row in existing.items():
                if key in desired or row['function_name'] not in managed:
                    continue
                await self.conn.execute(drop_trigger_sql(
                    quote_identifier(row['trigger_name']),
                    quote_identifier(row['table_name'])
                ))
                result['dropped'].append(row['trigger_name'])
                logger.info(f"Dropped trigger {row['trigger_name']} on {row['table_name']}")

            for key, trigger in desired.items():
                row = existing.get(key)
                if row is None:
                    await self.conn.execute(create_trigger_sql(trigger))
                    result['created'].append(trigger.name)
                    logger.info(f"Created trigger {trigger.name} on {trigger.table}")
                elif self._trigger_matches(row, trigger):
                    result['unchanged'].append(trigger.name)
                    logger.debug(f"Trigger {trigger.name} on {trigger.table} is up to date")
                else:
                    await self.conn.execute(drop_trigger_sql(trigger.name, trigger.table))
                    await self.conn.execute(create_trigger_sql(trigger))
                    result['replaced'].append(trigger.name)
                    logger.info(f"Replaced trigger {trigger.name} on {trigger.table}")

        return result
