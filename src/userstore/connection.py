"""
Database session handling on top of libpq.

This module provides the primary interfaces for connecting to PostgreSQL:
1. The `connect()` function for creating new sessions from options
2. The `PgConnection` class that owns exactly one libpq session

A PgConnection is either fully ready (connected and in non-blocking mode) or
never constructed. The native session is released once, by `close()`, by
leaving a `with` block, or when the object is garbage-collected.
"""
import logging
import threading
import weakref
from typing import Any, Self

import psycopg
from psycopg import pq
from userstore.exceptions import ConnectionFailure, ModeConfigurationFailure
from userstore.options import DatabaseOptions, is_descriptor, resolve_options
from userstore.utils.connection_utils import build_conninfo, obscure_conninfo

logger = logging.getLogger(__name__)

CLIENT_ENCODING = 'UTF8'
ENCODING = 'utf-8'


def _error_text(pgconn: Any) -> str:
    """Decode libpq's last error message for a session."""
    message = pgconn.error_message or b''
    return message.decode(ENCODING, 'replace').strip()


def _finish(pgconn: Any, descriptor: str) -> None:
    pgconn.finish()
    logger.info(f'Connection is CLOSE for {descriptor}')


class PgConnection:
    """Owns a single libpq session.

    Args:
        conninfo: libpq connection descriptor, URL or keyword form; the
            client encoding is forced to UTF8 on top of it
        nonblocking: place the session in non-blocking mode after connecting
        pgconn_factory: callable taking the encoded descriptor and returning
            a `psycopg.pq.PGconn` (default: `pq.PGconn.connect`)

    `lock` guards the session: every query holds it, and so does `close()`.

    Raises
        ConnectionFailure: the session could not be established
        ModeConfigurationFailure: the session refused non-blocking mode
    """

    def __init__(self, conninfo: str, nonblocking: bool = True,
                 pgconn_factory=pq.PGconn.connect) -> None:
        self.descriptor = obscure_conninfo(conninfo)
        self.lock = threading.Lock()

        try:
            conninfo = build_conninfo(conninfo, client_encoding=CLIENT_ENCODING)
        except psycopg.ProgrammingError as err:
            raise ConnectionFailure(f'Invalid connection descriptor {self.descriptor}: {err}') from err
        pgconn = pgconn_factory(conninfo.encode(ENCODING))
        if pgconn.status != pq.ConnStatus.OK:
            message = _error_text(pgconn)
            pgconn.finish()
            raise ConnectionFailure(message)

        if nonblocking:
            try:
                pgconn.nonblocking = 1
            except psycopg.OperationalError as err:
                pgconn.finish()
                raise ModeConfigurationFailure(
                    f"Couldn't set nonblocking mode to psql {self.descriptor} / {err}") from err

        self.pgconn = pgconn
        self._finalizer = weakref.finalize(self, _finish, pgconn, self.descriptor)
        logger.info(f'Connection is OK for {self.descriptor}')

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        state = 'closed' if self.closed else 'open'
        return f'<PgConnection {self.descriptor} ({state})>'

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    @property
    def encoding(self) -> str:
        """Python codec for text exchanged with the server."""
        return ENCODING

    def ensure_open(self) -> Any:
        """Return the live PGconn, refusing use after release.

        Raises
            ConnectionFailure: the session was already closed
        """
        if self.closed:
            raise ConnectionFailure(f'Connection to {self.descriptor} is closed')
        return self.pgconn

    def error_message(self) -> str:
        """Last error text reported by libpq for this session."""
        if self.closed:
            return ''
        return _error_text(self.pgconn)

    def close(self) -> None:
        """Release the session. Calling close again has no effect.

        Waits for a query running on another thread to finish first.
        """
        with self.lock:
            self._finalizer()


def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, pgconn_factory=pq.PGconn.connect,
            **kw: Any) -> PgConnection:
    """Open a PgConnection

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - Connection descriptor, URL or libpq keyword form
                - Name of an options object on `config`
        config: Configuration namespace for named options
        pgconn_factory: Passed through to PgConnection
        **kw: Keyword arguments overriding individual options

    Returns
        PgConnection ready for queries
    """
    if isinstance(options, str) and is_descriptor(options) and not kw \
            and not (config is not None and hasattr(config, options)):
        return PgConnection(options, pgconn_factory=pgconn_factory)

    options = resolve_options(options, config, **kw)
    return PgConnection(options.to_url(), nonblocking=options.nonblocking,
                        pgconn_factory=pgconn_factory)
