"""
Database-specific exception classes.

Execution-time failures are reported through return values (falsy
`ResultGuard`, `QueryResult.has_error`, boolean transaction results). The
classes below are raised only from construction paths and from the opt-in
strict helpers.
"""
import psycopg


class DatabaseError(Exception):
    """Base class for all pgclient errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection.
    """


class QueryError(DatabaseError):
    """Error in query syntax or execution.
    """


class TransactionError(DatabaseError):
    """Error beginning, committing or nesting a transaction.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    ConnectionFailure,
    )
