"""
PostgreSQL client-side access layer on libpq.

Statements can be run either as:
- Module functions: db.select(cn, sql, *args)
- Query methods: Query(cn).fetch(sql, args)

The module functions are thin facades over Connection, Query and
Transaction.
"""
__version__ = '0.1.0'

from collections.abc import Callable, Mapping
from typing import Any

from pgclient.connection import Connection
from pgclient.display import print_result, print_result_table
from pgclient.exceptions import ConnectionFailure, DatabaseError, DbConnectionError
from pgclient.exceptions import QueryError, TransactionError, ValidationError
from pgclient.options import DatabaseOptions, load_options
from pgclient.query import Query, execute_query, execute_query_params
from pgclient.query import get_database_info, test_connection
from pgclient.result import QueryResult, ResultGuard, ResultRow, StatementError
from pgclient.transaction import Transaction as transaction
from pgclient.transaction import TransactionState, execute_batch
from pgclient.transaction import execute_transaction


def connect(options: DatabaseOptions | Mapping[str, Any] | str,
            config: Any | None = None,
            connector: Callable[[bytes], Any] | None = None, **kw: Any) -> Connection:
    """Open a Connection, raising ConnectionFailure if the server refuses it.

    Args:
        options: Can be:
                - DatabaseOptions object
                - Section name of `config`
                - conninfo string or URI
                - Dictionary of options
        config: Configuration object (for loading named sections)
        connector: Callable opening a PGconn, see Connection
        **kw: Fields overriding the loaded options
    """
    options = load_options(options, config, **kw)
    cn = Connection(connector=connector)
    if not cn.connect(options):
        raise ConnectionFailure(cn.last_error)
    return cn


def execute(cn: Connection, sql: str, *args: Any) -> int:
    """Execute a statement and return the affected row count, -1 on failure.
    """
    result = select(cn, sql, *args)
    return -1 if result.has_error else result.affected_rows


delete = execute
insert = execute
update = execute


def select(cn: Connection, sql: str, *args: Any) -> QueryResult:
    """Execute a statement with optional positional parameters.
    """
    if args:
        return execute_query_params(cn, sql, args)
    return execute_query(cn, sql)


def select_scalar(cn: Connection, sql: str, *args: Any, default: str | None = None) -> str | None:
    """First cell of the first row, `default` when there is none or it is NULL.
    """
    result = select(cn, sql, *args)
    if result.has_error or not result.has_data:
        return default
    return result.first_row.get_string(0, default)


__all__ = [
    'connect',
    'Connection',
    'Query',
    'transaction',
    'TransactionState',
    'DatabaseOptions',
    'QueryResult',
    'ResultRow',
    'ResultGuard',
    'StatementError',
    'execute',
    'delete',
    'insert',
    'update',
    'select',
    'select_scalar',
    'execute_query',
    'execute_query_params',
    'execute_transaction',
    'execute_batch',
    'test_connection',
    'get_database_info',
    'print_result',
    'print_result_table',
    'DatabaseError',
    'ConnectionFailure',
    'QueryError',
    'TransactionError',
    'ValidationError',
    'DbConnectionError',
]
