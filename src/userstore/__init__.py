"""
Typed access to PostgreSQL through libpq, with user/backend records on top.

All query operations can be called either as:
- Module functions: userstore.execute(ex, sql, *args)
- QueryExecutor methods: ex.execute(sql, *args)

Example:

    with userstore.UserStore.open('postgresql://postgres@localhost/users_db') as store:
        user = store.get_user_by_login('TestUser0')
"""
__version__ = '0.1.0'

from typing import Any

from userstore.connection import PgConnection, connect
from userstore.exceptions import ConnectionFailure, DatabaseError
from userstore.exceptions import DbConnectionError, ModeConfigurationFailure
from userstore.exceptions import OutOfRange, QueryError, TypeConversionError
from userstore.options import DatabaseOptions
from userstore.params import bind_params
from userstore.query import OutcomeStatus, QueryExecutor, QueryOutcome
from userstore.result import ResultSet, get_field, get_value
from userstore.users import Backend, User, UserStore


def execute(ex: QueryExecutor, sql: str, *args: Any) -> QueryOutcome:
    """Execute a parameterized query and return its classified outcome.
    """
    return ex.execute(sql, *args)


def query(ex: QueryExecutor, sql: str, *args: Any) -> ResultSet | None:
    """Execute a query and return its rows, or None when there are none.
    """
    return ex.query(sql, *args)


__all__ = [
    'connect',
    'PgConnection',
    'DatabaseOptions',
    'QueryExecutor',
    'QueryOutcome',
    'OutcomeStatus',
    'ResultSet',
    'execute',
    'query',
    'bind_params',
    'get_value',
    'get_field',
    'User',
    'Backend',
    'UserStore',
    'DatabaseError',
    'ConnectionFailure',
    'ModeConfigurationFailure',
    'QueryError',
    'OutOfRange',
    'TypeConversionError',
    'DbConnectionError',
]
