"""
Statement execution against a borrowed Connection.

Every execution path (plain, parameterized, prepared) returns a
`ResultGuard`. The guard is truthy and owns the result when the server
answered COMMAND_OK or TUPLES_OK; otherwise the native result has already
been cleared and the guard carries a `StatementError`. Failures are logged,
never raised.
"""
import logging
import time
from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any

from pgclient.exceptions import ConnectionFailure, DbConnectionError
from pgclient.result import QueryResult, ResultGuard, StatementError
from pgclient.utils import SUCCESS_STATUSES, decode, error_text, get_value
from pgclient.utils import result_status_to_string

__all__ = [
    'Query',
    'execute_query',
    'execute_query_params',
    'test_connection',
    'get_database_info',
]

logger = logging.getLogger(__name__)

NOT_ESTABLISHED = 'Connection is not established'


def dumpsql(func):
    """Decorator for logging statements, their outcome and timing."""
    @wraps(func)
    def wrapper(self, sql: str, *args: Any, **kwargs: Any) -> ResultGuard:
        start = time.time()
        logger.debug(f'SQL:\n{sql}')
        try:
            guard = func(self, sql, *args, **kwargs)
            if guard:
                logger.debug(f'Query result: {decode(guard.result.command_status)}')
            return guard
        finally:
            elapsed = time.time() - start
            self.connection.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


def encode_param(value: Any, encoding: str = 'utf-8') -> bytes | None:
    """Render one positional parameter as text; None stays SQL NULL.
    """
    if value is None:
        return None
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)
    return str(value).encode(encoding)


class Query:
    """Statement executor bound to a healthy Connection.

    The connection is borrowed, not owned. Construction fails with
    ConnectionFailure when the connection is not OK; after that every
    operation re-checks health and returns a failure instead of raising.
    """

    def __init__(self, connection: Any) -> None:
        self.connection = connection
        if not connection.is_ok:
            raise ConnectionFailure('Database connection is not established')

    @property
    def is_connection_ok(self) -> bool:
        return self.connection.is_ok

    @property
    def last_error(self) -> str:
        return self.connection.last_error

    def execute(self, sql: str) -> ResultGuard:
        """Execute statement text verbatim.
        """
        rejected = self._reject(sql)
        if rejected is not None:
            return rejected
        command = sql.encode(self.connection.encoding)
        return self._run(sql, lambda pgconn: pgconn.exec_(command), 'Query')

    def execute_params(self, sql: str, params: Iterable[Any] = ()) -> ResultGuard:
        """Execute with positional $1..$n parameters sent as text.

        The server infers parameter types.
        """
        rejected = self._reject(sql)
        if rejected is not None:
            return rejected
        command = sql.encode(self.connection.encoding)
        values = [encode_param(p, self.connection.encoding) for p in params]
        return self._run(sql, lambda pgconn: pgconn.exec_params(command, values),
                         'Parameterized query', param_count=len(values))

    def execute_prepared(self, name: str, params: Iterable[Any] = ()) -> ResultGuard:
        """Execute a statement previously registered with `prepare()`.
        """
        rejected = self._reject(name, what='Statement name')
        if rejected is not None:
            return rejected
        stmt = name.encode(self.connection.encoding)
        values = [encode_param(p, self.connection.encoding) for p in params]
        return self._run(name, lambda pgconn: pgconn.exec_prepared(stmt, values),
                         'Prepared statement', param_count=len(values), echo=False)

    def prepare(self, name: str, sql: str) -> bool:
        """Register `sql` on the server under `name`.
        """
        if self._reject(sql) is not None or self._reject(name, what='Statement name') is not None:
            return False
        stmt = name.encode(self.connection.encoding)
        command = sql.encode(self.connection.encoding)
        with self._run(sql, lambda pgconn: pgconn.prepare(stmt, command), 'Prepare') as guard:
            return bool(guard)

    def execute_command(self, sql: str) -> bool:
        """Execute and discard the result; True on success.
        """
        with self.execute(sql) as guard:
            return bool(guard)

    def execute_int(self, sql: str, default: int = 0) -> int:
        """First cell as int, `default` when absent, NULL or not an integer.
        """
        value = self._first_cell(sql)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as exc:
            logger.debug(f'Failed to convert result to int: {exc}')
            return default

    def execute_string(self, sql: str, default: str = '') -> str:
        """First cell as text, `default` when absent or NULL.
        """
        value = self._first_cell(sql)
        return default if value is None else value

    def fetch(self, sql: str, params: Iterable[Any] | None = None) -> QueryResult:
        """Execute and materialize into a QueryResult.
        """
        guard = self.execute(sql) if params is None else self.execute_params(sql, params)
        with guard:
            return QueryResult.from_guard(guard, self.connection.encoding)

    def _first_cell(self, sql: str) -> str | None:
        with self.execute(sql) as guard:
            if not guard:
                return None
            return get_value(guard.result, 0, 0, encoding=self.connection.encoding)

    def _reject(self, text: str, what: str = 'Query') -> ResultGuard | None:
        """Failure guard when the statement must not reach the server.
        """
        if not self.connection.is_ok:
            logger.error('Database connection is not OK')
            return ResultGuard(error=StatementError(
                f'CONNECTION_{self.connection.status.name}', self.connection.last_error, text))
        if not text or not text.strip():
            logger.error(f'{what} cannot be empty')
            return ResultGuard(error=StatementError('EMPTY_QUERY', f'{what} cannot be empty', text))
        return None

    @dumpsql
    def _run(self, sql: str, call: Callable[[Any], Any], kind: str,
             param_count: int | None = None, echo: bool = True) -> ResultGuard:
        try:
            guard = ResultGuard(call(self.connection.pgconn))
        except DbConnectionError as err:
            logger.error(f'{kind} failed: {err}')
            return ResultGuard(error=StatementError('CONNECTION_ERROR', str(err), sql, param_count))

        if guard.status in SUCCESS_STATUSES:
            return guard

        status = result_status_to_string(guard.status)
        message = error_text(guard.result, self.connection.encoding) if guard else ''
        guard.close()
        message = message or self.connection.last_error
        logger.error(f'{kind} failed ({status}): {message}')
        logger.error(f"Failed {'query' if echo else 'statement'}: {sql}")
        if param_count is not None:
            logger.error(f'Parameters count: {param_count}')
        return ResultGuard(error=StatementError(status, message, sql, param_count))


def execute_query(cn: Any, sql: str) -> QueryResult:
    """Execute `sql` on `cn` and materialize the result.

    Returns an errored QueryResult instead of raising when the connection is
    not healthy.
    """
    if not cn.is_ok:
        return QueryResult.failed(NOT_ESTABLISHED)
    return Query(cn).fetch(sql)


def execute_query_params(cn: Any, sql: str, params: Iterable[Any]) -> QueryResult:
    """Execute `sql` with positional parameters and materialize the result.
    """
    if not cn.is_ok:
        return QueryResult.failed(NOT_ESTABLISHED)
    return Query(cn).fetch(sql, list(params))


def test_connection(cn: Any) -> bool:
    """True if `SELECT 1` succeeds.
    """
    return not execute_query(cn, 'SELECT 1').has_error


def get_database_info(cn: Any) -> str:
    """Server version, current database and current user, one per line.
    """
    result = execute_query(cn, 'SELECT version(), current_database(), current_user')
    if result.has_error or not result.has_data:
        return 'Failed to get database info'
    return (f"Version: {result.first_value('version')}\n"
            f"Database: {result.first_value('current_database')}\n"
            f"User: {result.first_value('current_user')}")
