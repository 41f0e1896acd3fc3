"""
Statement execution against a live PostgreSQL server.
"""
import pgclient as db
import pytest
from pgclient.query import Query

pytestmark = pytest.mark.integration


def test_select_one(conn):
    result = db.select(conn, 'SELECT 1')
    assert not result.has_error
    assert result.row_count == 1
    assert result.column_count == 1
    assert result.first_value(0) == '1'


def test_connection_info(conn):
    assert db.test_connection(conn)
    info = db.get_database_info(conn)
    assert info.startswith('Version: PostgreSQL')
    assert 'Database: test_db' in info
    assert 'User: postgres' in info


def test_parameter_round_trip(conn):
    result = db.select(conn, 'select $1::int + 1 as n, $2::text as word', 41, 'hello')
    assert result.first_int('n') == 42
    assert result.first_value('word') == 'hello'


def test_null_versus_empty_string(conn):
    """A NULL cell and an empty string stay distinguishable"""
    row = db.select(conn, "select null::text as missing, ''::text as blank").first_row
    assert row.is_null('missing')
    assert not row.is_null('blank')
    assert row.get_string('blank', 'dflt') == ''
    assert row.get_string('missing', 'dflt') == 'dflt'


def test_null_parameter(conn):
    assert db.select_scalar(conn, 'select $1::text is null', None) == 't'


def test_create_insert_count(conn):
    query = Query(conn)
    assert query.execute_command('drop table if exists t')
    assert query.execute_command('CREATE TABLE t(id INT)')
    assert query.execute_command('INSERT INTO t VALUES (5)')
    assert query.execute_int('SELECT COUNT(*) FROM t') == 1


def test_affected_rows(conn):
    assert db.update(conn, 'update test_table set value = value + 1 where value > $1', 15) == 2
    assert db.insert(conn, 'insert into test_table (name, value) values ($1, $2)', 'Dave', 40) == 1
    assert db.delete(conn, 'delete from test_table where name = $1', 'Nobody') == 0


def test_failed_statement(conn):
    query = Query(conn)
    guard = query.execute('select * from nonexistent_table')
    assert not guard
    assert guard.error.status == 'FATAL_ERROR'
    assert 'nonexistent_table' in guard.error.message
    assert db.execute(conn, 'select * from nonexistent_table') == -1
    assert conn.is_ok


def test_prepared_statement(conn):
    query = Query(conn)
    assert query.prepare('value_by_name', 'select value from test_table where name = $1')
    with query.execute_prepared('value_by_name', ['Bob']) as guard:
        assert guard
        assert guard.result.get_value(0, 0) == b'20'


def test_typed_accessors(conn):
    row = db.select(conn, 'select 42 as i, 9.75::float8 as d, true as b').first_row
    assert row.get_int('i') == 42
    assert row.get_double('d') == pytest.approx(9.75)
    assert row.get_bool('b') is True
    assert row.get_int('missing', -1) == -1


def test_to_dataframe(conn):
    df = db.select(conn, 'select name, value from test_table order by id').to_dataframe()
    assert df['name'].tolist() == ['Alice', 'Bob', 'Charlie']
