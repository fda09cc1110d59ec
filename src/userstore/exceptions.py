"""
Database-specific exception classes.
"""
import psycopg


class DatabaseError(Exception):
    """Base class for all userstore errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining the database session.
    """


class ModeConfigurationFailure(ConnectionFailure):
    """The session could not be placed into non-blocking mode.
    """


class QueryError(DatabaseError):
    """Error in query syntax or execution.

    Query failures are reported through `QueryOutcome`; this is raised only
    when a caller asks for it with `QueryOutcome.raise_for_status()`.
    """


class OutOfRange(DatabaseError):
    """Requested row, column or column name does not exist in a result set.
    """


class TypeConversionError(DatabaseError):
    """Cell text could not be decoded into the requested type.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    ConnectionFailure,
    )
