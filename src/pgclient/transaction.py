"""
Transaction handling for statement sequences.
"""
import enum
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from pgclient.exceptions import TransactionError
from pgclient.query import Query, execute_query, execute_query_params
from pgclient.result import QueryResult

__all__ = [
    'Transaction',
    'TransactionState',
    'execute_transaction',
    'execute_batch',
]

logger = logging.getLogger(__name__)


class TransactionState(enum.Enum):
    IDLE = 'idle'
    IN_TRANSACTION = 'in_transaction'
    ROLLED_BACK = 'rolled_back'


class Transaction:
    """Context manager for running multiple commands in a transaction.

    BEGIN is issued on enter. Leaving the block normally commits; leaving it
    with an exception rolls back and lets the exception propagate. Statement
    failures inside the block raise QueryError so the block unwinds. Nested
    transactions on the same connection are not supported.

    Examples
        with Transaction(cn) as tx:
            tx.execute('delete from t where id = $1', 7)
            tx.execute('update u set n = n + 1')

    `begin()`, `commit()` and `rollback()` can also be driven by hand; they
    return booleans and move `state` between IDLE, IN_TRANSACTION and
    ROLLED_BACK.
    """

    def __init__(self, cn: Any) -> None:
        if cn.in_transaction:
            raise TransactionError('Nested transactions are not supported')
        self.connection = cn
        self.state = TransactionState.IDLE
        self._query: Query | None = None

    def __enter__(self) -> 'Transaction':
        if not self.begin():
            raise TransactionError(f'Could not begin transaction: {self.connection.last_error}')
        return self

    def __exit__(self, exc_type: type | None, value: BaseException | None,
                 traceback: Any | None) -> None:
        if self.state is not TransactionState.IN_TRANSACTION:
            return
        if exc_type is not None:
            self.rollback()
            return
        if not self.commit():
            raise TransactionError(f'Could not commit transaction: {self.connection.last_error}')

    @property
    def query(self) -> Query:
        """Statement executor on the transaction's connection.
        """
        if self._query is None:
            self._query = Query(self.connection)
        return self._query

    def begin(self) -> bool:
        if self.state is TransactionState.IN_TRANSACTION:
            logger.error('Transaction already started')
            return False
        if not self.connection.begin_transaction():
            logger.error(f'Could not begin transaction: {self.connection.last_error}')
            return False
        self.state = TransactionState.IN_TRANSACTION
        logger.debug(f'Started transaction for connection {id(self.connection)}')
        return True

    def commit(self) -> bool:
        """Commit; on failure make sure the server side is rolled back.
        """
        if self.connection.commit_transaction():
            self.state = TransactionState.IDLE
            logger.debug(f'Committed transaction for connection {id(self.connection)}')
            return True
        logger.error(f'Commit failed: {self.connection.last_error}')
        if self.connection.in_transaction:
            self.connection.rollback_transaction()
        self.state = TransactionState.ROLLED_BACK
        return False

    def rollback(self) -> bool:
        logger.warning('Rolling back the current transaction')
        ok = self.connection.rollback_transaction()
        self.state = TransactionState.ROLLED_BACK
        return ok

    def execute(self, sql: str, *params: Any) -> QueryResult:
        """Execute within the transaction; raises QueryError on failure.
        """
        result = self.query.fetch(sql, list(params) if params else None)
        return result.raise_for_error()

    def run(self, items: Iterable[Any], run_item: Callable[[Any], QueryResult]) -> bool:
        """Run every item inside one transaction.

        Stops at the first item whose result has an error, rolls back and
        returns False. Otherwise returns whether COMMIT succeeded. An
        exception raised by an item triggers rollback and is re-raised.
        """
        if not self.begin():
            return False
        try:
            for position, item in enumerate(items, 1):
                result = run_item(item)
                if result.has_error:
                    logger.error(f'Transaction item {position} failed: {result.error_message}')
                    self.rollback()
                    return False
        except BaseException:
            self.rollback()
            raise
        return self.commit()


def _coordinator(cn: Any) -> Transaction | None:
    try:
        return Transaction(cn)
    except TransactionError as err:
        logger.error(str(err))
        return None


def execute_transaction(cn: Any, queries: Iterable[str]) -> bool:
    """Execute plain statements atomically; True only if all ran and COMMIT succeeded.
    """
    tx = _coordinator(cn)
    if tx is None:
        return False
    return tx.run(queries, lambda sql: execute_query(cn, sql))


def execute_batch(cn: Any, base_query: str, params_list: Iterable[Sequence[Any]]) -> bool:
    """Execute one parameterized statement per parameter set, atomically.
    """
    tx = _coordinator(cn)
    if tx is None:
        return False
    return tx.run(params_list, lambda params: execute_query_params(cn, base_query, params))
