"""DDL rendering for schema definitions.

Every statement produced here is safe to run against a database that already
holds the object: tables and indexes use IF NOT EXISTS, functions use
CREATE OR REPLACE and triggers are dropped with IF EXISTS.
"""
from .models import (
    ColumnDefinition,
    FunctionDefinition,
    IndexDefinition,
    TableDefinition,
    TriggerDefinition,
    TriggerEvent,
    TriggerLevel,
    TriggerTiming,
)

# pg_trigger.tgtype bits
TRIGGER_TYPE_ROW = 1 << 0
TRIGGER_TYPE_BEFORE = 1 << 1
TRIGGER_TYPE_INSERT = 1 << 2
TRIGGER_TYPE_DELETE = 1 << 3
TRIGGER_TYPE_UPDATE = 1 << 4

_EVENT_BITS = {
    TriggerEvent.INSERT: TRIGGER_TYPE_INSERT,
    TriggerEvent.DELETE: TRIGGER_TYPE_DELETE,
    TriggerEvent.UPDATE: TRIGGER_TYPE_UPDATE,
}

# Bits compared when deciding whether an existing trigger matches its definition
TRIGGER_TYPE_MASK = (
    TRIGGER_TYPE_ROW | TRIGGER_TYPE_BEFORE | TRIGGER_TYPE_INSERT
    | TRIGGER_TYPE_DELETE | TRIGGER_TYPE_UPDATE
)


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, escaping embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def column_sql(column: ColumnDefinition) -> str:
    """Render one column definition for CREATE TABLE."""
    col_def = f"{column.name} {column.type}"

    if column.references:
        col_def += f" REFERENCES {column.references}"
        if column.on_delete:
            col_def += f" ON DELETE {column.on_delete.value}"

    if column.default is not None:
        col_def += f" DEFAULT {column.default}"

    if not column.nullable:
        col_def += " NOT NULL"

    return col_def


def create_table_sql(table: TableDefinition) -> str:
    """Render CREATE TABLE IF NOT EXISTS for a table definition.

    Primary key and unique columns become table constraints, foreign keys
    are declared inline so that the whole table is created in one statement.
    """
    columns = []
    constraints = []

    for column in table.columns:
        columns.append(column_sql(column))
        if column.primary_key:
            constraints.append(f"PRIMARY KEY ({column.name})")
        elif column.unique:
            constraints.append(f"UNIQUE ({column.name})")

    table_def = ',\n    '.join(columns + constraints)
    return f"CREATE TABLE IF NOT EXISTS {table.name} (\n    {table_def}\n)"


def create_index_sql(table: TableDefinition, index: IndexDefinition) -> str:
    """Render CREATE INDEX IF NOT EXISTS for an index on table."""
    unique = 'UNIQUE ' if index.unique else ''
    return (
        f"CREATE {unique}INDEX IF NOT EXISTS {index.name} "
        f"ON {table.name}({', '.join(index.columns)})"
    )


def create_function_sql(function: FunctionDefinition) -> str:
    """Render CREATE OR REPLACE FUNCTION with a dollar-quoted body."""
    return (
        f"CREATE OR REPLACE FUNCTION {function.name}()\n"
        f"RETURNS {function.returns}\n"
        f"AS $${function.body}$$\n"
        f"LANGUAGE {function.language}"
    )


def create_trigger_sql(trigger: TriggerDefinition) -> str:
    """Render CREATE TRIGGER for a trigger binding."""
    events = ' OR '.join(event.value for event in trigger.events)
    return (
        f"CREATE TRIGGER {trigger.name}\n"
        f"{trigger.timing.value} {events} ON {trigger.table}\n"
        f"FOR EACH {trigger.for_each.value}\n"
        f"EXECUTE FUNCTION {trigger.function}()"
    )


def drop_trigger_sql(name: str, table: str) -> str:
    """Render DROP TRIGGER IF EXISTS for a binding on table."""
    return f"DROP TRIGGER IF EXISTS {name} ON {table}"


def create_database_sql(name: str) -> str:
    """Render CREATE DATABASE with the name quoted."""
    return f"CREATE DATABASE {quote_identifier(name)}"


def trigger_type(trigger: TriggerDefinition) -> int:
    """Expected pg_trigger.tgtype for a trigger definition."""
    value = 0
    if trigger.for_each == TriggerLevel.ROW:
        value |= TRIGGER_TYPE_ROW
    if trigger.timing == TriggerTiming.BEFORE:
        value |= TRIGGER_TYPE_BEFORE
    for event in trigger.events:
        value |= _EVENT_BITS[event]
    return value
