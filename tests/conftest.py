"""Shared fixtures: an in-memory stand-in for an asyncpg connection."""
import re

import asyncpg
import pytest

from database.lib import schema_manager

_EVENT_BITS = {'INSERT': 4, 'DELETE': 8, 'UPDATE': 16}

CREATE_TABLE_RE = re.compile(r'CREATE TABLE IF NOT EXISTS (\w+)')
CREATE_INDEX_RE = re.compile(r'CREATE (?:UNIQUE )?INDEX IF NOT EXISTS (\w+)')
CREATE_FUNCTION_RE = re.compile(r'CREATE OR REPLACE FUNCTION (\w+)')
CREATE_TRIGGER_RE = re.compile(
    r'CREATE TRIGGER (\w+)\s+(BEFORE|AFTER) (.+?) ON (\w+)\s+'
    r'FOR EACH (ROW|STATEMENT)\s+EXECUTE FUNCTION (\w+)'
)
DROP_TRIGGER_RE = re.compile(r'DROP TRIGGER IF EXISTS "?(\w+)"? ON "?(\w+)"?')
CREATE_DATABASE_RE = re.compile(r'CREATE DATABASE "(\w+)"')


def trigger_row(name, table, function, tgtype=19):
    """Catalog row for a trigger; 19 is BEFORE UPDATE FOR EACH ROW."""
    return {
        'trigger_name': name.lower(),
        'table_name': table.lower(),
        'function_name': function.lower(),
        'tgtype': tgtype,
    }


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn
        self._snapshot = None

    async def __aenter__(self):
        self._snapshot = self.conn.snapshot()
        self.conn.log.append('BEGIN')
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.conn.log.append('COMMIT')
        else:
            self.conn.restore(self._snapshot)
            self.conn.log.append('ROLLBACK')
        return False


class FakeConnection:
    """Keeps just enough catalog state to answer the queries we issue."""

    def __init__(self, databases=('postgres',), tables=(), indexes=(),
                 functions=(), triggers=(), fail_on=None):
        self.databases = set(databases)
        self.tables = {name.lower() for name in tables}
        self.indexes = {name.lower() for name in indexes}
        self.functions = {name.lower() for name in functions}
        self.triggers = {(row['table_name'], row['trigger_name']): row for row in triggers}
        self.fail_on = fail_on
        self.statements = []
        self.log = []
        self.closed = False

    def snapshot(self):
        return (set(self.databases), set(self.tables), set(self.indexes),
                set(self.functions), dict(self.triggers))

    def restore(self, snapshot):
        (self.databases, self.tables, self.indexes,
         self.functions, self.triggers) = snapshot

    def transaction(self):
        return FakeTransaction(self)

    def _check(self, sql):
        if self.closed:
            raise asyncpg.exceptions.InterfaceError('connection is closed')
        if self.fail_on and self.fail_on in sql:
            raise asyncpg.exceptions.PostgresSyntaxError(f'syntax error at or near "{self.fail_on}"')

    async def execute(self, sql, *args):
        self._check(sql)
        self.statements.append(sql)
        self.log.append(sql)

        match = CREATE_TABLE_RE.search(sql)
        if match:
            self.tables.add(match.group(1).lower())
            return 'CREATE TABLE'

        match = CREATE_INDEX_RE.search(sql)
        if match:
            self.indexes.add(match.group(1).lower())
            return 'CREATE INDEX'

        match = CREATE_FUNCTION_RE.search(sql)
        if match:
            self.functions.add(match.group(1).lower())
            return 'CREATE FUNCTION'

        match = CREATE_TRIGGER_RE.search(sql)
        if match:
            name, timing, events, table, level, function = match.groups()
            key = (table.lower(), name.lower())
            if key in self.triggers:
                raise asyncpg.exceptions.DuplicateObjectError(
                    f'trigger "{name}" for relation "{table}" already exists'
                )
            tgtype = (1 if level == 'ROW' else 0) | (2 if timing == 'BEFORE' else 0)
            for event in events.split(' OR '):
                tgtype |= _EVENT_BITS[event.strip()]
            self.triggers[key] = trigger_row(name, table, function, tgtype)
            return 'CREATE TRIGGER'

        match = DROP_TRIGGER_RE.search(sql)
        if match:
            self.triggers.pop((match.group(2).lower(), match.group(1).lower()), None)
            return 'DROP TRIGGER'

        match = CREATE_DATABASE_RE.search(sql)
        if match:
            self.databases.add(match.group(1))
            return 'CREATE DATABASE'

        return 'OK'

    async def fetch(self, sql, *args):
        self._check(sql)
        if sql == schema_manager.EXISTING_TABLES_SQL:
            return [{'tablename': name} for name in sorted(self.tables)]
        if sql == schema_manager.EXISTING_INDEXES_SQL:
            return [{'indexname': name} for name in sorted(self.indexes)]
        if sql == schema_manager.EXISTING_FUNCTIONS_SQL:
            return [{'proname': name} for name in sorted(self.functions)]
        if sql == schema_manager.EXISTING_TRIGGERS_SQL:
            functions, tables = args
            return [
                row for row in self.triggers.values()
                if row['function_name'] in functions or row['table_name'] in tables
            ]
        raise AssertionError(f'unexpected query: {sql}')

    async def fetchval(self, sql, *args):
        self._check(sql)
        if 'pg_database' in sql:
            return args[0] in self.databases
        raise AssertionError(f'unexpected query: {sql}')

    async def close(self):
        self.closed = True


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection


@pytest.fixture
def make_trigger_row():
    return trigger_row
