"""
Native result ownership and result materialization.

This module provides:
- ResultGuard: single owner of one `psycopg.pq.PGresult`
- StatementError: diagnostic carried by a failed ResultGuard
- ResultRow: immutable, column-indexed view over one row of text cells
- QueryResult: handle-free rows, column names and affected-row count
"""
import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from pgclient.exceptions import QueryError
from pgclient.utils import decode, error_text, get_column_names
from pgclient.utils import parse_affected_rows, result_status_to_string
from psycopg import pq

__all__ = [
    'ResultGuard',
    'StatementError',
    'ResultRow',
    'QueryResult',
]

logger = logging.getLogger(__name__)

TRUE_TOKENS = frozenset(('t', 'true', '1', 'yes'))
FALSE_TOKENS = frozenset(('f', 'false', '0', 'no'))


@dataclass(frozen=True)
class StatementError:
    """Why a statement did not produce a usable result.
    """
    status: str
    message: str
    sql: str | None = None
    param_count: int | None = None

    def __str__(self) -> str:
        if self.message:
            return f'{self.status}: {self.message}'
        return self.status


class ResultGuard:
    """Owns exactly one PGresult and clears it exactly once.

    Whatever produces a native result wraps it in a guard immediately, so
    every exit path (normal return, early return, exception) frees it:

        with query.execute('select 1') as guard:
            if guard:
                value = guard.result.get_value(0, 0)

    A falsy guard holds no result; when it came from a failed statement,
    `error` describes the failure. Guards cannot be copied. Use `release()`
    to hand the raw result to a longer-lived owner or `transfer()` to move
    it into a new guard.
    """

    def __init__(self, result: Any = None, error: StatementError | None = None) -> None:
        self._result = result
        self.error = error

    def __enter__(self) -> 'ResultGuard':
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __del__(self) -> None:
        if getattr(self, '_result', None) is not None:
            self.close()

    def __bool__(self) -> bool:
        return self._result is not None

    def __copy__(self):
        raise TypeError(f'{type(self).__name__} cannot be copied, use transfer()')

    def __deepcopy__(self, memo: dict) -> None:
        raise TypeError(f'{type(self).__name__} cannot be copied, use transfer()')

    def __repr__(self) -> str:
        if self._result is None:
            return f'<ResultGuard empty error={self.error!s}>'
        return f'<ResultGuard {result_status_to_string(self._result.status)}>'

    @property
    def result(self) -> Any:
        """The owned PGresult, or None.
        """
        return self._result

    @property
    def status(self) -> int | None:
        return self._result.status if self._result is not None else None

    def release(self) -> Any:
        """Detach and return the result without clearing it.
        """
        result, self._result = self._result, None
        return result

    def reset(self, result: Any = None) -> None:
        """Clear the current result, then take ownership of `result`.
        """
        if result is self._result:
            return
        previous, self._result = self._result, result
        if previous is not None:
            previous.clear()

    def close(self) -> None:
        self.reset(None)

    def transfer(self) -> 'ResultGuard':
        """Move ownership into a new guard, leaving this one empty.
        """
        return ResultGuard(self.release(), self.error)


class ResultRow:
    """Immutable view over one row of text cells.

    Cells are `str` or None for SQL NULL; an empty string stays ''. Every
    accessor takes a column name or a zero-based column index. Typed
    accessors never raise on bad data: NULL, empty, missing or unparseable
    cells yield the caller-supplied default.
    """

    __slots__ = ('_columns', '_values', '_index')

    def __init__(self, columns: Sequence[str] = (), values: Sequence[str | None] = ()) -> None:
        if len(columns) != len(values):
            raise ValueError(f'Got {len(values)} values for {len(columns)} columns')
        object.__setattr__(self, '_columns', tuple(columns))
        object.__setattr__(self, '_values', tuple(values))
        index: dict[str, int] = {}
        for position, name in enumerate(self._columns):
            index.setdefault(name, position)
        object.__setattr__(self, '_index', index)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f'{type(self).__name__} is immutable')

    def __repr__(self) -> str:
        return f'ResultRow({self.to_dict()!r})'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResultRow):
            return NotImplemented
        return self._columns == other._columns and self._values == other._values

    def __hash__(self) -> int:
        return hash((self._columns, self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str | None]:
        return iter(self._values)

    def __getitem__(self, key: str | int) -> str | None:
        position = self._position(key)
        if position is None:
            if isinstance(key, int):
                raise IndexError(f'Column index {key} out of range')
            raise KeyError(key)
        return self._values[position]

    def _position(self, key: str | int) -> int | None:
        if isinstance(key, int):
            return key if 0 <= key < len(self._values) else None
        return self._index.get(key)

    def _raw(self, key: str | int) -> str | None:
        position = self._position(key)
        return None if position is None else self._values[position]

    def _convert(self, key: str | int, cast: Callable[[str], Any], default: Any) -> Any:
        value = self._raw(key)
        if value is None or value == '':
            return default
        try:
            return cast(value)
        except (TypeError, ValueError, OverflowError) as exc:
            logger.debug(f'Could not convert column {key!r} value {value!r}: {exc}')
            return default

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    @property
    def values(self) -> tuple[str | None, ...]:
        return self._values

    @property
    def column_count(self) -> int:
        return len(self._values)

    def is_empty(self) -> bool:
        return not self._values

    def has_column(self, column: str) -> bool:
        return column in self._index

    def is_null(self, key: str | int) -> bool:
        """True for SQL NULL and for a column that does not exist.
        """
        return self._raw(key) is None

    def get_string(self, key: str | int, default: str = '') -> str:
        value = self._raw(key)
        return default if value is None else value

    def get_int(self, key: str | int, default: int = 0) -> int:
        return self._convert(key, int, default)

    def get_double(self, key: str | int, default: float = 0.0) -> float:
        return self._convert(key, float, default)

    def get_bool(self, key: str | int, default: bool = False) -> bool:
        """Recognizes t/true/1/yes and f/false/0/no; anything else is `default`.
        """
        value = self._raw(key)
        if value in TRUE_TOKENS:
            return True
        if value in FALSE_TOKENS:
            return False
        return default

    def to_dict(self) -> dict[str, str | None]:
        return dict(zip(self._columns, self._values))


_EMPTY_ROW = ResultRow()


class QueryResult:
    """Materialized, handle-free outcome of one statement.

    Either an error message is set (and there are no rows or columns), or
    the result holds the rows and column names of a read statement, with
    `affected_rows` equal to the row count, or the server-reported count of
    a write statement.
    """

    def __init__(self, result: Any = None, encoding: str = 'utf-8') -> None:
        self._rows: list[ResultRow] = []
        self._column_names: list[str] = []
        self._affected_rows = 0
        self._error_message = ''
        if result is not None:
            self.load_from_result(result, encoding)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[ResultRow]:
        return iter(self._rows)

    def __repr__(self) -> str:
        if self.has_error:
            return f'<QueryResult error={self._error_message!r}>'
        return (f'<QueryResult rows={len(self._rows)} columns={len(self._column_names)} '
                f'affected={self._affected_rows}>')

    @classmethod
    def from_result(cls, result: Any, encoding: str = 'utf-8') -> 'QueryResult':
        """Materialize a PGresult; None yields an errored result.
        """
        qr = cls()
        qr.load_from_result(result, encoding)
        return qr

    @classmethod
    def from_guard(cls, guard: ResultGuard, encoding: str = 'utf-8') -> 'QueryResult':
        """Materialize the result held by a guard, or record the guard's error.

        The guard keeps ownership and still clears the result itself.
        """
        if guard:
            return cls.from_result(guard.result, encoding)
        return cls.failed(str(guard.error) if guard.error else 'Invalid result')

    @classmethod
    def failed(cls, message: str) -> 'QueryResult':
        qr = cls()
        qr.error_message = message
        return qr

    def load_from_result(self, result: Any, encoding: str = 'utf-8') -> bool:
        """Copy everything out of a PGresult. Returns False and sets the
        error message when the result is missing or failed.
        """
        self.clear()

        if result is None:
            self._error_message = 'Invalid result'
            return False

        status = result.status
        if status == pq.ExecStatus.TUPLES_OK:
            self._column_names = get_column_names(result, encoding)
            ncols = len(self._column_names)
            self._rows = [
                ResultRow(self._column_names,
                          [decode(result.get_value(row, col), encoding) for col in range(ncols)])
                for row in range(result.ntuples)
            ]
            self._affected_rows = len(self._rows)
        elif status == pq.ExecStatus.COMMAND_OK:
            self._affected_rows = parse_affected_rows(result.command_tuples)
        else:
            message = result_status_to_string(status)
            detail = error_text(result, encoding)
            self._error_message = f'{message}: {detail}' if detail else message
            return False
        return True

    def clear(self) -> None:
        self._rows = []
        self._column_names = []
        self._affected_rows = 0
        self._error_message = ''

    @property
    def rows(self) -> tuple[ResultRow, ...]:
        return tuple(self._rows)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(self._column_names)

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def column_count(self) -> int:
        return len(self._column_names)

    @property
    def affected_rows(self) -> int:
        return self._affected_rows

    @property
    def has_data(self) -> bool:
        return bool(self._rows)

    @property
    def has_error(self) -> bool:
        return bool(self._error_message)

    @property
    def error_message(self) -> str:
        return self._error_message

    @error_message.setter
    def error_message(self, message: str) -> None:
        if message:
            self.clear()
        self._error_message = message or ''

    def get_row(self, index: int) -> ResultRow:
        """Row at `index`, or an empty row when out of range.
        """
        if 0 <= index < len(self._rows):
            return self._rows[index]
        return _EMPTY_ROW

    @property
    def first_row(self) -> ResultRow:
        return self.get_row(0)

    def first_value(self, column: str | int, default: str = '') -> str:
        return self.first_row.get_string(column, default)

    def first_int(self, column: str | int, default: int = 0) -> int:
        return self.first_row.get_int(column, default)

    def raise_for_error(self) -> 'QueryResult':
        """Raise QueryError if the statement failed, else return self.
        """
        if self.has_error:
            raise QueryError(self._error_message)
        return self

    def to_dataframe(self, loader: Callable[..., Any] | None = None, **kwargs: Any) -> Any:
        """Load rows through a data loader, a numpy-backed DataFrame by default.
        """
        from pgclient.loaders import pandas_numpy_data_loader

        loader = loader or pandas_numpy_data_loader
        return loader(self._rows, self._column_names, **kwargs)
