"""Console rendering of query results."""
import sys
from typing import Any, TextIO

from pgclient.result import QueryResult

__all__ = ['format_result_table', 'print_result', 'print_result_table']

NULL_TEXT = 'NULL'
PADDING = 2


def _cell(value: str | None) -> str:
    return NULL_TEXT if value is None else value


def format_result_table(result: QueryResult) -> str:
    """Fixed-width table: header, dashed separator, rows, row total.

    Each column is as wide as its widest header or cell, plus two spaces.
    """
    names = result.column_names
    if not names:
        return 'No columns\n'

    widths = [len(name) for name in names]
    for row in result:
        for i, value in enumerate(row.values[:len(widths)]):
            widths[i] = max(widths[i], len(_cell(value)))

    lines = [
        ''.join(name.ljust(width + PADDING) for name, width in zip(names, widths)),
        ''.join('-' * (width + PADDING) for width in widths),
    ]
    lines.extend(
        ''.join(_cell(value).ljust(width + PADDING) for value, width in zip(row.values, widths))
        for row in result
    )
    lines.append(f'Total rows: {result.row_count}')
    return '\n'.join(lines) + '\n'


def print_result_table(result: QueryResult, output: TextIO | None = None) -> None:
    (output or sys.stdout).write(format_result_table(result))


def print_result(result: 'QueryResult | Any', output: TextIO | None = None) -> None:
    """Print errors, affected-row counts or a table, whichever applies.

    Accepts a QueryResult or a raw PGresult, which is materialized first.
    """
    output = output or sys.stdout
    if not isinstance(result, QueryResult):
        result = QueryResult.from_result(result)
    if result.has_error:
        output.write(f'Error: {result.error_message}\n')
        return
    if not result.has_data:
        output.write(f'No data returned. Affected rows: {result.affected_rows}\n')
        return
    print_result_table(result, output)
