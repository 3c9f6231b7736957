"""Database setup tests against a real PostgreSQL server.

Set TEST_DB_HOST (and optionally TEST_DB_PORT, TEST_DB_USER, TEST_DB_PASSWORD)
to run them. Each test provisions a throwaway database and drops it afterwards.
"""
import copy
import os
import uuid

import pytest
import pytest_asyncio
from asyncpg.exceptions import UniqueViolationError

from config import load_settings_conf
from database import connect, setup_database
from database.lib.schema_manager import SchemaManager, parse_schema
from database.schema.v1 import schema as v1_schema

TEST_DB_HOST = os.getenv('TEST_DB_HOST')

pytestmark = [
    pytest.mark.asyncio,  # Mark all tests as async
    pytest.mark.skipif(not TEST_DB_HOST, reason='TEST_DB_HOST not set'),
]

MUTABLE_TABLES = ['user_profile', 'plants', 'GardeningTools']

@pytest.fixture
def settings():
    return load_settings_conf(environ={
        'DB_HOST': TEST_DB_HOST or 'localhost',
        'DB_PORT': os.getenv('TEST_DB_PORT', '5432'),
        'DB_USER': os.getenv('TEST_DB_USER', 'postgres'),
        'DB_PASSWORD': os.getenv('TEST_DB_PASSWORD', ''),
    })

@pytest.fixture
def schema():
    raw = copy.deepcopy(v1_schema)
    raw['database'] = f"leafy_test_{uuid.uuid4().hex[:12]}"
    return parse_schema(raw)

@pytest_asyncio.fixture
async def provisioned(settings, schema):
    """Run the setup once, drop the database afterwards."""
    report = await setup_database(settings, schema)
    yield report

    admin = await connect(settings, settings['admin_database'])
    try:
        await admin.execute(f'DROP DATABASE IF EXISTS "{schema.database}"')
    finally:
        await admin.close()

@pytest_asyncio.fixture
async def conn(settings, schema, provisioned):
    """Connection to the provisioned database."""
    conn = await connect(settings, schema.database)
    yield conn
    await conn.close()

async def _count_triggers(conn) -> int:
    return await conn.fetchval(
        '''
        SELECT count(*)
        FROM pg_trigger t
        JOIN pg_proc p ON p.oid = t.tgfoid
        WHERE NOT t.tgisinternal AND p.proname = 'update_updated_at_column'
        '''
    )

async def test_fresh_setup(provisioned, conn, schema):
    """Test a single run creates the database and every object."""
    assert provisioned['database_created'] is True
    assert len(provisioned['tables_created']) == 10
    assert len(provisioned['triggers']['created']) == 3

    assert await SchemaManager(conn, schema).verify() == []
    assert await _count_triggers(conn) == 3

async def test_database_exists_exactly_once(provisioned, settings, schema):
    admin = await connect(settings, settings['admin_database'])
    try:
        count = await admin.fetchval(
            'SELECT count(*) FROM pg_database WHERE datname = $1',
            schema.database
        )
    finally:
        await admin.close()
    assert count == 1

async def test_rerun_is_idempotent(provisioned, conn, settings, schema):
    """Test a second run neither recreates nor duplicates anything."""
    index_count = await conn.fetchval(
        "SELECT count(*) FROM pg_indexes WHERE schemaname = current_schema()"
    )

    report = await setup_database(settings, schema)

    assert report['database_created'] is False
    assert report['tables_created'] == []
    assert len(report['tables_existing']) == 10
    assert len(report['triggers']['unchanged']) == 3
    assert await _count_triggers(conn) == 3
    assert await conn.fetchval(
        "SELECT count(*) FROM pg_indexes WHERE schemaname = current_schema()"
    ) == index_count

async def test_rerun_after_partial_setup(provisioned, conn, settings, schema):
    """Test a run interrupted before triggers were bound can be completed."""
    await conn.execute('DROP FUNCTION update_updated_at_column() CASCADE')
    assert await _count_triggers(conn) == 0

    report = await setup_database(settings, schema)

    assert report['tables_created'] == []
    assert len(report['triggers']['created']) == 3
    assert await _count_triggers(conn) == 3

async def test_deleting_user_removes_profile(conn):
    user_id = await conn.fetchval(
        '''
        INSERT INTO users (FName, LName, Email, Password)
        VALUES ('Ada', 'Gardener', 'ada@example.com', 'x')
        RETURNING id
        '''
    )
    await conn.execute(
        "INSERT INTO user_profile (user_id, address) VALUES ($1, '1 Leaf Lane')",
        user_id
    )

    await conn.execute('DELETE FROM users WHERE id = $1', user_id)

    assert await conn.fetchval(
        'SELECT count(*) FROM user_profile WHERE user_id = $1', user_id
    ) == 0

async def test_deleting_order_removes_items(conn):
    order_id = await conn.fetchval(
        '''
        INSERT INTO Orders (FName, LName, Email, Phone, Address, Total_price, Final_price)
        VALUES ('Ada', 'Gardener', 'ada@example.com', '555', '1 Leaf Lane', 20.00, 18.50)
        RETURNING Id
        '''
    )
    await conn.execute(
        '''
        INSERT INTO Order_items (Order_id, Product_name, Quantity, Price, Subtotal)
        VALUES ($1, 'Fern', 2, 10.00, 20.00)
        ''',
        order_id
    )

    row = await conn.fetchrow('SELECT status, Discount FROM Orders WHERE Id = $1', order_id)
    assert row['status'] == 'pending'
    assert row['discount'] == 0

    await conn.execute('DELETE FROM Orders WHERE Id = $1', order_id)

    assert await conn.fetchval(
        'SELECT count(*) FROM Order_items WHERE Order_id = $1', order_id
    ) == 0

async def test_duplicate_user_email_rejected(conn):
    insert = '''
        INSERT INTO users (FName, LName, Email, Password)
        VALUES ('Ada', 'Gardener', 'same@example.com', 'x')
    '''
    await conn.execute(insert)
    with pytest.raises(UniqueViolationError):
        await conn.execute(insert)

async def test_duplicate_admin_email_rejected(conn):
    insert = '''
        INSERT INTO admin (adminName, adminEmail, password)
        VALUES ('root', 'admin@example.com', 'x')
    '''
    await conn.execute(insert)
    with pytest.raises(UniqueViolationError):
        await conn.execute(insert)

@pytest.mark.parametrize('table', MUTABLE_TABLES)
async def test_update_refreshes_updated_at(conn, table):
    """Test updated_at moves forward even when the update does not set it."""
    columns = {
        'user_profile': ("address", "'1 Leaf Lane'"),
        'plants': ("name", "'Fern'"),
        'GardeningTools': ("name", "'Trowel'"),
    }
    column, value = columns[table]

    row_id = await conn.fetchval(
        f'''
        INSERT INTO {table} ({column}, updated_at)
        VALUES ({value}, TIMESTAMP '2000-01-01 00:00:00')
        RETURNING id
        '''
    )
    before = await conn.fetchval('SELECT LOCALTIMESTAMP')

    await conn.execute(f'UPDATE {table} SET {column} = {value} WHERE id = $1', row_id)

    updated_at = await conn.fetchval(f'SELECT updated_at FROM {table} WHERE id = $1', row_id)
    assert updated_at >= before
