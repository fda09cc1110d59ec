"""
User and backend server records stored in PostgreSQL.

Tables (external contract, not created here):

    users(id, login, email, password, "backendId", token, "tokenExp", status)
    backend(id, address, region)

Lookups return an all-default record when nothing matches or the query
fails; updates and inserts report success as a bool.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Self

from userstore.connection import connect
from userstore.options import DatabaseOptions
from userstore.query import QueryExecutor
from userstore.result import ResultSet, get_field

__all__ = ['Backend', 'User', 'UserStore']

logger = logging.getLogger(__name__)

SELECT_USER_BY_ID = 'SELECT * FROM users WHERE id = $1'
SELECT_USER_BY_TOKEN = 'SELECT * FROM users WHERE token = $1'
SELECT_USER_BY_LOGIN = 'SELECT * FROM users WHERE login = $1'
SELECT_USER_BY_EMAIL = 'SELECT * FROM users WHERE email = $1'
SELECT_BACKEND_BY_ID = 'SELECT * FROM backend WHERE id = $1'

UPDATE_USER = """
UPDATE users
SET login = $1, email = $2, password = $3, "backendId" = $4, token = $5, "tokenExp" = $6, status = $7
WHERE id = $8
"""

INSERT_USER = """
INSERT INTO users (login, email, password, "backendId", token, "tokenExp", status)
VALUES ($1, $2, $3, $4, $5, $6, $7)
"""


@dataclass
class Backend:
    id: int = 0
    address: str = ''
    region: str = ''

    def to_dict(self) -> dict[str, Any]:
        return {'id': self.id, 'address': self.address, 'region': self.region}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(id=int(data.get('id', 0)),
                   address=data.get('address', ''),
                   region=data.get('region', ''))


@dataclass
class User:
    """A row of `users`, with its backend server resolved.

    `to_dict`/`from_dict` use the JSON field names of the table
    (`backendId`, `tokenExp`).
    """
    id: int = 0
    login: str = ''
    email: str = ''
    password: str = ''
    backend_id: Backend = field(default_factory=Backend)
    token: str = ''
    token_exp: int = 0
    status: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'login': self.login,
            'email': self.email,
            'password': self.password,
            'backendId': self.backend_id.to_dict(),
            'token': self.token,
            'tokenExp': self.token_exp,
            'status': self.status,
            }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(id=int(data.get('id', 0)),
                   login=data.get('login', ''),
                   email=data.get('email', ''),
                   password=data.get('password', ''),
                   backend_id=Backend.from_dict(data.get('backendId') or {}),
                   token=data.get('token', ''),
                   token_exp=int(data.get('tokenExp', 0)),
                   status=int(data.get('status', 0)))


class UserStore:
    """Typed access to the `users` and `backend` tables.

    Args:
        executor: QueryExecutor owning the connection; closed with the store
    """

    def __init__(self, executor: QueryExecutor) -> None:
        self.executor = executor

    @classmethod
    def open(cls, options: DatabaseOptions | dict[str, Any] | str,
             config: Any | None = None, logger: logging.Logger | None = None,
             **kw: Any) -> Self:
        """Connect and wrap the connection in a store.

        Accepts the same option forms as `userstore.connect`.
        """
        return cls(QueryExecutor(connect(options, config, **kw), logger=logger))

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def close(self) -> None:
        self.executor.close()

    def _get_user(self, result: ResultSet) -> User:
        return User(id=get_field(result, 'id', int),
                    login=get_field(result, 'login'),
                    email=get_field(result, 'email'),
                    password=get_field(result, 'password'),
                    backend_id=self.get_backend_server_by_id(get_field(result, '"backendId"', int)),
                    token=get_field(result, 'token'),
                    token_exp=get_field(result, '"tokenExp"', int),
                    status=get_field(result, 'status', int))

    def _find_user(self, sql: str, value: str | int) -> User:
        result = self.executor.query(sql, value)
        if result is None:
            return User()
        return self._get_user(result)

    def get_user_by_id(self, id: str | int) -> User:
        return self._find_user(SELECT_USER_BY_ID, id)

    def get_user_by_token(self, token: str) -> User:
        return self._find_user(SELECT_USER_BY_TOKEN, token)

    def get_user_by_login(self, login: str) -> User:
        return self._find_user(SELECT_USER_BY_LOGIN, login)

    def get_user_by_email(self, email: str) -> User:
        return self._find_user(SELECT_USER_BY_EMAIL, email)

    def get_backend_server_by_id(self, id: int) -> Backend:
        result = self.executor.query(SELECT_BACKEND_BY_ID, id)
        if result is None:
            return Backend()
        return Backend(id=get_field(result, 'id', int),
                       address=get_field(result, 'address'),
                       region=get_field(result, 'region'))

    def update_user(self, user: User) -> bool:
        """Write every field of `user` to the row with its id.
        """
        outcome = self.executor.execute(
            UPDATE_USER, user.login, user.email, user.password, user.backend_id.id,
            user.token, user.token_exp, user.status, user.id)
        if outcome.failed:
            logger.warning('Update user FAIL')
            return False
        logger.info('Update user OK')
        return True

    def add_user(self, user: User) -> bool:
        """Insert `user`; the id is assigned by the database.
        """
        outcome = self.executor.execute(
            INSERT_USER, user.login, user.email, user.password, user.backend_id.id,
            user.token, user.token_exp, user.status)
        if outcome.failed:
            logger.warning('Add user FAIL')
            return False
        logger.info('Add user OK')
        return True
