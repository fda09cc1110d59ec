import logging

import pytest
from userstore.connection import connect
from userstore.exceptions import ConnectionFailure
from userstore.query import QueryExecutor
from userstore.users import UserStore

import config

logger = logging.getLogger(__name__)

SCHEMA = [
    'drop table if exists users',
    'drop table if exists backend',
    """
create table backend (
    id serial primary key,
    address varchar(255) not null,
    region varchar(64)
)
""",
    """
create table users (
    id serial primary key,
    login varchar(255) not null unique,
    email varchar(255),
    password varchar(255),
    "backendId" integer,
    token varchar(255),
    "tokenExp" bigint,
    status integer
)
""",
    "insert into backend (address, region) values ('10.0.0.1:8080', 'eu-west')",
    """
insert into users (login, email, password, "backendId", token, "tokenExp", status)
values ('TestUser0', 'a@b.com', 'hash', 1, 'tok', 123, 0)
""",
]


def stage_test_data(ex):
    for statement in SCHEMA:
        ex.execute(statement).raise_for_status()


@pytest.fixture(scope='session')
def pg_available():
    """Skip integration tests when no server answers at config.postgresql."""
    try:
        store = UserStore.open('postgresql', config=config)
    except ConnectionFailure as err:
        pytest.skip(f'PostgreSQL not available: {err}')
    store.close()
    return True


@pytest.fixture
def pg_executor(pg_available):
    """Executor on a freshly staged users/backend schema."""
    ex = QueryExecutor(connect('postgresql', config=config))
    try:
        stage_test_data(ex)
        yield ex
    finally:
        ex.close()


@pytest.fixture
def pg_store(pg_executor):
    return UserStore(pg_executor)
