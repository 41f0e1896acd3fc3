"""Low-level result utilities with no internal dependencies.

These helpers work directly on `psycopg.pq` objects (PGconn, PGresult) and
have no imports from other pgclient modules, making them safe to import
without circular dependency concerns.
"""
import logging
from typing import Any

from psycopg import pq

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset((pq.ExecStatus.COMMAND_OK, pq.ExecStatus.TUPLES_OK))

NO_CONNECTION = 'No connection established'


def decode(value: bytes | str | None, encoding: str = 'utf-8') -> str | None:
    """Decode a libpq text value, keeping None (SQL NULL) as None.
    """
    if value is None or isinstance(value, str):
        return value
    return bytes(value).decode(encoding, 'replace')


def error_text(obj: Any, encoding: str = 'utf-8') -> str:
    """Error message of a PGconn or PGresult, without the trailing newline.
    """
    if obj is None:
        return NO_CONNECTION
    return (decode(obj.error_message, encoding) or '').strip()


def result_status_to_string(status: int | None) -> str:
    """Name of a result status, e.g. ``TUPLES_OK`` or ``FATAL_ERROR``.
    """
    if status is None:
        return 'NO_RESULT'
    try:
        return pq.ExecStatus(status).name
    except ValueError:
        return f'UNKNOWN_STATUS_{status}'


def is_result_valid(result: Any) -> bool:
    """True if the result exists and carries a success status.
    """
    return result is not None and result.status in SUCCESS_STATUSES


def get_row_count(result: Any) -> int:
    return result.ntuples if is_result_valid(result) else 0


def get_column_count(result: Any) -> int:
    return result.nfields if is_result_valid(result) else 0


def get_column_names(result: Any, encoding: str = 'utf-8') -> list[str]:
    """Column names in server-reported order.
    """
    return [decode(result.fname(i), encoding) or '' for i in range(get_column_count(result))]


def get_value(result: Any, row: int, col: int, default: str | None = None,
              encoding: str = 'utf-8') -> str | None:
    """Cell text at (row, col); None for SQL NULL, `default` when out of range.
    """
    if not 0 <= row < get_row_count(result) or not 0 <= col < get_column_count(result):
        return default
    return decode(result.get_value(row, col), encoding)


def parse_affected_rows(value: Any) -> int:
    """Parse the server "rows affected" count, 0 when absent or unparseable.
    """
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(decode(value) or 0)
    except ValueError:
        logger.debug(f'Could not parse affected rows from {value!r}')
        return 0
