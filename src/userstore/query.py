"""
Query execution and outcome classification.

A QueryExecutor serializes every query issued through one PgConnection with
the connection's lock, binds the parameters, runs them through libpq
`exec_params` with positional `$1..$n` placeholders, and classifies what came back:

1. FAILED: libpq reported an error, or the call itself failed
2. EMPTY: a tuple set with no rows
3. ROWS: a tuple set with at least one row (the only outcome with a result)
4. COMMAND_OK: a statement that returns no tuple set (UPDATE, INSERT, ...)

Query failures never raise; they are logged and returned as an outcome.
"""
import enum
import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Self

import psycopg
from psycopg import pq
from userstore.connection import PgConnection
from userstore.exceptions import QueryError
from userstore.params import bind_params
from userstore.result import ResultSet

__all__ = [
    'OutcomeStatus',
    'QueryOutcome',
    'QueryExecutor',
]


class OutcomeStatus(enum.Enum):
    ROWS = 'rows'
    COMMAND_OK = 'command_ok'
    EMPTY = 'empty'
    FAILED = 'failed'


@dataclass(frozen=True)
class QueryOutcome:
    """Classified result of one query execution.

    Only a ROWS outcome carries a result set; it is also the only truthy one,
    so `if outcome:` reads as "there is something to extract".
    """
    status: OutcomeStatus
    sql: str
    result: ResultSet | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.status is OutcomeStatus.ROWS

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    def raise_for_status(self) -> Self:
        """Raise QueryError for a FAILED outcome, otherwise return self.
        """
        if self.failed:
            raise QueryError(f'{self.message}. Query was: {self.sql}')
        return self


def dumpsql(func):
    """Decorator for logging SQL queries, parameters and timing."""
    @wraps(func)
    def wrapper(self, sql: str, *args: Any):
        start = time.time()
        self.logger.debug(f'SQL:\n{sql}\nargs: {args}')
        try:
            outcome = func(self, sql, *args)
            self.logger.debug(f'Query outcome: {outcome.status.value}')
            return outcome
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            self.logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class QueryExecutor:
    """Runs queries against one PgConnection, one at a time.

    Args:
        cn: the connection to query; the executor takes ownership and closes
            it on `close()`
        logger: receives the query diagnostics (defaults to this module's logger)
    """

    def __init__(self, cn: PgConnection, logger: logging.Logger | None = None) -> None:
        self.cn = cn
        self.logger = logger or logging.getLogger(__name__)
        self.calls = 0
        self.time = 0

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics

        Args:
            elapsed: Time in seconds that the query took to execute
        """
        self.time += elapsed
        self.calls += 1

    @property
    def closed(self) -> bool:
        return self.cn.closed

    def close(self) -> None:
        """Close the underlying connection and log the call statistics.
        """
        if self.cn.closed:
            return
        self.cn.close()
        self.logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')

    def execute(self, sql: str, *args: Any) -> QueryOutcome:
        """Execute a parameterized query and classify its outcome.

        Args:
            sql: query text with positional placeholders ($1, $2, ...)
            *args: parameters in placeholder order; str, int or float

        Returns
            QueryOutcome

        Raises
            TypeError: a parameter has an unsupported type
            ConnectionFailure: the connection was already closed
        """
        with self.cn.lock:
            return self._execute(sql, *args)

    @dumpsql
    def _execute(self, sql: str, *args: Any) -> QueryOutcome:
        pgconn = self.cn.ensure_open()
        values = bind_params(args, self.cn.encoding)
        try:
            pgresult = pgconn.exec_params(sql.encode(self.cn.encoding), values)
        except psycopg.OperationalError as err:
            return self._failed(sql, str(err))
        try:
            return self._classify(sql, pgresult)
        finally:
            pgresult.clear()

    def query(self, sql: str, *args: Any) -> ResultSet | None:
        """Execute a query and return its rows, or None when there are none.

        Failures, empty tuple sets and statements without rows all return
        None; use `execute` to tell them apart.
        """
        return self.execute(sql, *args).result

    def _classify(self, sql: str, pgresult: Any) -> QueryOutcome:
        status = pgresult.status
        if status not in {pq.ExecStatus.TUPLES_OK, pq.ExecStatus.COMMAND_OK}:
            message = (pgresult.error_message or b'').decode(self.cn.encoding, 'replace').strip()
            return self._failed(sql, message or self.cn.error_message())

        if status == pq.ExecStatus.COMMAND_OK:
            return QueryOutcome(OutcomeStatus.COMMAND_OK, sql)

        if pgresult.ntuples == 0:
            self.logger.info(f'Query returned 0 rows: {sql}')
            return QueryOutcome(OutcomeStatus.EMPTY, sql)

        result = ResultSet.from_pgresult(pgresult, self.cn.encoding)
        return QueryOutcome(OutcomeStatus.ROWS, sql, result)

    def _failed(self, sql: str, message: str) -> QueryOutcome:
        self.logger.error(f'SQL error: {message}. Query was: {sql}')
        return QueryOutcome(OutcomeStatus.FAILED, sql, message=message)
