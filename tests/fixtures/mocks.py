"""
Fake libpq objects for unit tests.

Provides in-memory stand-ins for `psycopg.pq.PGconn` and `psycopg.pq.PGresult`
so Connection, Query and Transaction can be exercised without a server.

Usage:
    def test_select(cn, pgconn):
        pgconn.responses['select 1'] = fake_select(['?column?'], [['1']])
        assert Query(cn).fetch('select 1').first_value(0) == '1'
"""
import pytest
from pgclient.connection import Connection
from psycopg import pq

SUCCESS = (pq.ExecStatus.COMMAND_OK, pq.ExecStatus.TUPLES_OK)


def _encode(value):
    return None if value is None else value.encode()


class FakePGresult:
    """PGresult look-alike that counts clear() calls.
    """

    def __init__(self, status=pq.ExecStatus.COMMAND_OK, columns=(), rows=(),
                 command_status=b'', command_tuples=None, error_message=b''):
        self.status = status
        self._columns = [c.encode() for c in columns]
        self._rows = [[_encode(v) for v in row] for row in rows]
        self.command_status = command_status
        self.command_tuples = command_tuples
        self.error_message = error_message
        self.cleared = 0

    @property
    def ntuples(self):
        return len(self._rows)

    @property
    def nfields(self):
        return len(self._columns)

    def fname(self, column):
        return self._columns[column]

    def get_value(self, row, column):
        return self._rows[row][column]

    def clear(self):
        self.cleared += 1


def fake_select(columns, rows):
    return FakePGresult(pq.ExecStatus.TUPLES_OK, columns, rows,
                        command_status=f'SELECT {len(rows)}'.encode())


def fake_command(tag='INSERT 0 1', tuples=1):
    return FakePGresult(pq.ExecStatus.COMMAND_OK, command_status=tag.encode(),
                        command_tuples=tuples)


def fake_error(message='ERROR:  syntax error', status=pq.ExecStatus.FATAL_ERROR):
    return FakePGresult(status, error_message=f'{message}\n'.encode())


class FakePGconn:
    """PGconn look-alike with scripted responses.

    `responses` maps statement text to a FakePGresult or to a callable taking
    the parameter values and returning one. Unknown statements succeed as a
    command affecting no rows. Transaction control statements drive
    `transaction_status` the way the server does.
    """

    def __init__(self, status=pq.ConnStatus.OK, error_message=b''):
        self.status = status
        self.error_message = error_message
        self.transaction_status = pq.TransactionStatus.IDLE
        self.db = b'test_db'
        self.host = b'localhost'
        self.responses = {}
        self.prepared = {}
        self.executed = []
        self.results = []
        self.finished = 0

    def parameter_status(self, name):
        return {b'client_encoding': b'UTF8'}.get(name)

    def finish(self):
        self.finished += 1
        self.status = pq.ConnStatus.BAD

    def exec_(self, command):
        return self._respond('exec', command, None)

    def exec_params(self, command, param_values, *args, **kwargs):
        return self._respond('params', command, param_values)

    def prepare(self, name, command, param_types=None):
        self.prepared[name] = command
        self.executed.append(('prepare', command.decode(), None))
        return self._track(FakePGresult(command_status=b'PREPARE'))

    def exec_prepared(self, name, param_values, *args, **kwargs):
        if name not in self.prepared:
            return self._track(fake_error(f'ERROR:  prepared statement "{name.decode()}" does not exist'))
        return self._respond('prepared', self.prepared[name], param_values)

    def _respond(self, kind, command, values):
        sql = command.decode()
        self.executed.append((kind, sql, values))
        keyword = sql.strip().upper()
        if keyword == 'BEGIN':
            self.transaction_status = pq.TransactionStatus.INTRANS
            return self._track(FakePGresult(command_status=b'BEGIN'))
        if keyword == 'COMMIT':
            aborted = self.transaction_status == pq.TransactionStatus.INERROR
            self.transaction_status = pq.TransactionStatus.IDLE
            return self._track(FakePGresult(command_status=b'ROLLBACK' if aborted else b'COMMIT'))
        if keyword == 'ROLLBACK':
            self.transaction_status = pq.TransactionStatus.IDLE
            return self._track(FakePGresult(command_status=b'ROLLBACK'))

        response = self.responses.get(sql)
        if response is None:
            result = fake_command('UPDATE 0', 0)
        elif callable(response):
            result = response(values)
        else:
            result = response
        return self._track(result)

    def _track(self, result):
        if result.status not in SUCCESS:
            self.error_message = result.error_message
            if self.transaction_status == pq.TransactionStatus.INTRANS:
                self.transaction_status = pq.TransactionStatus.INERROR
        self.results.append(result)
        return result

    @property
    def statements(self):
        return [sql for _, sql, _ in self.executed]


@pytest.fixture
def pgconn():
    """A healthy fake session."""
    return FakePGconn()


@pytest.fixture
def connector(pgconn):
    """Connector returning `pgconn` and recording the conninfo it was given."""
    def connect(conninfo):
        connect.calls.append(conninfo)
        return pgconn
    connect.calls = []
    return connect


@pytest.fixture
def cn(connector):
    """Connection owning the fake session."""
    connection = Connection('host=localhost dbname=test_db', connector=connector)
    yield connection
    connection.disconnect()
