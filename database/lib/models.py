"""Schema definition models.

Schema version files describe the desired database as plain dicts. These
models validate such a dict before any DDL is rendered from it, so that every
identifier interpolated into a statement is a plain SQL identifier and every
object is defined before something else refers to it.
"""
import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
REFERENCE_RE = re.compile(r'^\s*([A-Za-z_][A-Za-z0-9_]*)\s*\(\s*([A-Za-z_][A-Za-z0-9_]*)\s*\)\s*$')


def _check_identifier(value: str) -> str:
    if not IDENTIFIER_RE.match(value):
        raise ValueError(f"Invalid SQL identifier: {value!r}")
    return value


class OnDelete(str, Enum):
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


class TriggerTiming(str, Enum):
    BEFORE = "BEFORE"
    AFTER = "AFTER"


class TriggerEvent(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class TriggerLevel(str, Enum):
    ROW = "ROW"
    STATEMENT = "STATEMENT"


class ColumnDefinition(BaseModel):
    name: str
    type: str
    primary_key: bool = False
    unique: bool = False
    nullable: bool = True
    default: Optional[str] = None
    references: Optional[str] = None  # "table(column)"
    on_delete: Optional[OnDelete] = None

    @field_validator('name')
    @classmethod
    def check_name(cls, value: str) -> str:
        return _check_identifier(value)

    @field_validator('references')
    @classmethod
    def check_references(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not REFERENCE_RE.match(value):
            raise ValueError(f"Invalid reference {value!r}, expected 'table(column)'")
        return value

    @model_validator(mode='after')
    def check_on_delete(self) -> 'ColumnDefinition':
        if self.on_delete is not None and self.references is None:
            raise ValueError(f"Column {self.name} sets on_delete without references")
        return self

    @property
    def referenced_table(self) -> Optional[str]:
        if self.references is None:
            return None
        return REFERENCE_RE.match(self.references).group(1)


class IndexDefinition(BaseModel):
    name: str
    columns: List[str] = Field(min_length=1)
    unique: bool = False

    @field_validator('name')
    @classmethod
    def check_name(cls, value: str) -> str:
        return _check_identifier(value)

    @field_validator('columns')
    @classmethod
    def check_columns(cls, value: List[str]) -> List[str]:
        return [_check_identifier(column) for column in value]


class TableDefinition(BaseModel):
    name: str
    columns: List[ColumnDefinition] = Field(min_length=1)
    indexes: List[IndexDefinition] = Field(default_factory=list)

    @field_validator('name')
    @classmethod
    def check_name(cls, value: str) -> str:
        return _check_identifier(value)

    @model_validator(mode='after')
    def check_table(self) -> 'TableDefinition':
        seen = set()
        for column in self.columns:
            key = column.name.lower()
            if key in seen:
                raise ValueError(f"Duplicate column {column.name} in table {self.name}")
            seen.add(key)

        for index in self.indexes:
            for column in index.columns:
                if column.lower() not in seen:
                    raise ValueError(
                        f"Index {index.name} references unknown column "
                        f"{column} on table {self.name}"
                    )
        return self


class FunctionDefinition(BaseModel):
    name: str
    body: str
    language: str = 'plpgsql'
    returns: str = 'TRIGGER'

    @field_validator('name', 'language')
    @classmethod
    def check_identifiers(cls, value: str) -> str:
        return _check_identifier(value)

    @field_validator('body')
    @classmethod
    def check_body(cls, value: str) -> str:
        # Bodies are dollar-quoted
        if '$$' in value:
            raise ValueError("Function body must not contain '$$'")
        return value


class TriggerDefinition(BaseModel):
    name: str
    table: str
    function: str
    timing: TriggerTiming = TriggerTiming.BEFORE
    events: List[TriggerEvent] = Field(default_factory=lambda: [TriggerEvent.UPDATE], min_length=1)
    for_each: TriggerLevel = TriggerLevel.ROW

    @field_validator('name', 'table', 'function')
    @classmethod
    def check_identifiers(cls, value: str) -> str:
        return _check_identifier(value)

    @property
    def key(self):
        """Catalog key; unquoted identifiers are folded to lower case."""
        return (self.table.lower(), self.name.lower())


class SchemaDefinition(BaseModel):
    version: int = Field(ge=1)
    database: str = 'leafy_db'
    tables: List[TableDefinition] = Field(default_factory=list)
    functions: List[FunctionDefinition] = Field(default_factory=list)
    triggers: List[TriggerDefinition] = Field(default_factory=list)

    @field_validator('database')
    @classmethod
    def check_database(cls, value: str) -> str:
        return _check_identifier(value)

    @model_validator(mode='after')
    def check_schema(self) -> 'SchemaDefinition':
        defined = set()
        index_names = set()
        for table in self.tables:
            key = table.name.lower()
            if key in defined:
                raise ValueError(f"Duplicate table {table.name}")

            for column in table.columns:
                target = column.referenced_table
                # Self references are allowed, anything else must come first
                if target is not None and target.lower() not in defined | {key}:
                    raise ValueError(
                        f"Table {table.name} references {target} "
                        "before it is defined"
                    )

            for index in table.indexes:
                if index.name.lower() in index_names:
                    raise ValueError(f"Duplicate index {index.name}")
                index_names.add(index.name.lower())

            defined.add(key)

        functions = {function.name.lower() for function in self.functions}
        if len(functions) != len(self.functions):
            raise ValueError("Duplicate function definition")

        bindings = set()
        for trigger in self.triggers:
            if trigger.table.lower() not in defined:
                raise ValueError(f"Trigger {trigger.name} is bound to unknown table {trigger.table}")
            if trigger.function.lower() not in functions:
                raise ValueError(f"Trigger {trigger.name} calls unknown function {trigger.function}")
            if trigger.key in bindings:
                raise ValueError(f"Duplicate trigger {trigger.name} on {trigger.table}")
            bindings.add(trigger.key)

        return self

    @property
    def indexes(self):
        """(table, index) pairs in schema order."""
        return [(table, index) for table in self.tables for index in table.indexes]
