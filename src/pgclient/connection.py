"""
Database connection handling on top of libpq.

This module provides the `Connection` class, the single owner of one
`psycopg.pq.PGconn` session. It opens and closes the session, reports its
health, and issues the transaction control statements:

- connect(conninfo) - (re)open the session, returns success
- disconnect() - close the session, safe to repeat
- is_connected / is_ok - session held / session held and healthy
- begin_transaction(), commit_transaction(), rollback_transaction()

None of these raise on database failure; they return booleans and keep the
driver's error text available through `last_error`.
"""
import logging
from collections.abc import Callable
from typing import Any

import psycopg
from pgclient.exceptions import DbConnectionError
from pgclient.options import DatabaseOptions
from pgclient.result import ResultGuard
from pgclient.utils import NO_CONNECTION, decode, error_text
from pgclient.utils import result_status_to_string
from psycopg import pq

__all__ = ['Connection']

logger = logging.getLogger(__name__)

_ACTIVE_TRANSACTION = (pq.TransactionStatus.INTRANS, pq.TransactionStatus.INERROR)


class Connection:
    """Owns exactly one libpq session.

    The session is closed on `disconnect()`, on leaving a `with` block, when
    it is replaced by another `connect()`, and when the object is collected.
    A Connection cannot be copied; `transfer()` moves the session into a new
    Connection and leaves this one disconnected.

    Examples
        with Connection('host=localhost dbname=test user=app') as cn:
            if cn.is_ok:
                cn.begin_transaction()
    """

    def __init__(self, conninfo: 'str | DatabaseOptions | None' = None,
                 connector: Callable[[bytes], Any] | None = None) -> None:
        """Initialize, connecting immediately when `conninfo` is given.

        Args:
            conninfo: Connection string or DatabaseOptions
            connector: Callable opening a PGconn from conninfo bytes
                       (defaults to `psycopg.pq.PGconn.connect`)
        """
        self._pgconn = None
        self._connector = connector or pq.PGconn.connect
        self._connect_error = ''
        self.options: DatabaseOptions | None = None
        self.encoding = 'utf-8'
        self.calls = 0
        self.time = 0.0
        if conninfo is not None:
            self.connect(conninfo)

    def __enter__(self) -> 'Connection':
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.disconnect()

    def __del__(self) -> None:
        pgconn = getattr(self, '_pgconn', None)
        if pgconn is not None:
            self._pgconn = None
            pgconn.finish()

    def __copy__(self):
        raise TypeError('Connection cannot be copied, use transfer()')

    def __deepcopy__(self, memo: dict) -> None:
        raise TypeError('Connection cannot be copied, use transfer()')

    def __repr__(self) -> str:
        state = 'ok' if self.is_ok else 'connected' if self.is_connected else 'closed'
        return f'<Connection {state}>'

    def connect(self, conninfo: 'str | DatabaseOptions') -> bool:
        """Close any current session and open a new one.

        On failure the half-open session is finished and its error text is
        kept for `last_error`.
        """
        self.disconnect()
        self._connect_error = ''

        if isinstance(conninfo, DatabaseOptions):
            self.options = conninfo
            conninfo = conninfo.to_conninfo()
        else:
            self.options = None

        try:
            pgconn = self._connector(conninfo.encode())
        except (psycopg.Error, MemoryError) as err:
            self._connect_error = str(err)
            logger.error(f'Connection failed: {err}')
            return False

        if pgconn.status != pq.ConnStatus.OK:
            self._connect_error = error_text(pgconn)
            logger.error(f'Connection failed: {self._connect_error}')
            pgconn.finish()
            return False

        self._pgconn = pgconn
        try:
            self.encoding = psycopg.ConnectionInfo(pgconn).encoding
        except Exception as e:
            logger.debug(f'Could not read client encoding, using utf-8: {e}')
            self.encoding = 'utf-8'
        logger.info(f'Connected to database {decode(pgconn.db)} on {decode(pgconn.host)}')
        return True

    def disconnect(self) -> None:
        """Close the session if one is held; no-op otherwise.
        """
        if self._pgconn is None:
            return
        pgconn, self._pgconn = self._pgconn, None
        pgconn.finish()
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                     f'(avg: {self.time/max(1, self.calls):.3f}s per query)')

    close = disconnect

    def transfer(self) -> 'Connection':
        """Move the session into a new Connection, leaving this one empty.
        """
        other = Connection(connector=self._connector)
        other._pgconn, self._pgconn = self._pgconn, None
        other.options = self.options
        other.encoding = self.encoding
        other.calls, other.time = self.calls, self.time
        return other

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @property
    def pgconn(self) -> Any:
        """The raw PGconn, or None when disconnected.
        """
        return self._pgconn

    @property
    def info(self) -> psycopg.ConnectionInfo | None:
        if self._pgconn is None:
            return None
        return psycopg.ConnectionInfo(self._pgconn)

    @property
    def is_connected(self) -> bool:
        return self._pgconn is not None

    @property
    def is_ok(self) -> bool:
        return self._pgconn is not None and self._pgconn.status == pq.ConnStatus.OK

    @property
    def status(self) -> pq.ConnStatus:
        if self._pgconn is None:
            return pq.ConnStatus.BAD
        return pq.ConnStatus(self._pgconn.status)

    @property
    def transaction_status(self) -> pq.TransactionStatus:
        if self._pgconn is None:
            return pq.TransactionStatus.UNKNOWN
        return pq.TransactionStatus(self._pgconn.transaction_status)

    @property
    def in_transaction(self) -> bool:
        """True while the server reports an open or failed transaction block.
        """
        return self.transaction_status in _ACTIVE_TRANSACTION

    @property
    def last_error(self) -> str:
        """Driver error text of the session, or of the last failed connect.
        """
        if self._pgconn is not None:
            return error_text(self._pgconn, self.encoding)
        return self._connect_error or NO_CONNECTION

    def begin_transaction(self) -> bool:
        return self._control('BEGIN')

    def commit_transaction(self) -> bool:
        """Commit; a COMMIT the server answers with ROLLBACK counts as failure.
        """
        return self._control('COMMIT')

    def rollback_transaction(self) -> bool:
        return self._control('ROLLBACK')

    def _control(self, command: str) -> bool:
        if not self.is_ok:
            logger.debug(f'Skipping {command}: connection is not OK')
            return False

        try:
            guard = ResultGuard(self._pgconn.exec_(command.encode()))
        except DbConnectionError as err:
            logger.error(f'{command} failed: {err}')
            return False

        with guard:
            ok = guard.status == pq.ExecStatus.COMMAND_OK
            if ok and command == 'COMMIT' and guard.result.command_status == b'ROLLBACK':
                logger.warning('COMMIT of an aborted transaction was rolled back by the server')
                return False
            if not ok:
                logger.error(f'{command} failed ({result_status_to_string(guard.status)}): '
                             f'{self.last_error}')
            return ok
