"""Unit tests for the users/backend mapping on top of the executor."""
import logging

import pytest
from userstore.users import Backend, User, UserStore

from tests.fixtures.mocks import command_result, error_result, tuples_result

USER_COLUMNS = ['id', 'login', 'email', 'password', 'backendId', 'token', 'tokenExp', 'status']
BACKEND_COLUMNS = ['id', 'address', 'region']


def fixture_responder(users_rows, backend_rows=(('1', '10.0.0.1:8080', 'eu-west'),)):
    """Answer users/backend lookups from in-memory rows."""
    def respond(command, values):
        if 'FROM users' in command:
            return tuples_result(USER_COLUMNS, users_rows)
        if 'FROM backend' in command:
            rows = [row for row in backend_rows if row[0].encode() == values[0]]
            return tuples_result(BACKEND_COLUMNS, rows)
        return command_result()
    return respond


@pytest.fixture
def store(executor):
    return UserStore(executor)


class TestLookups:

    def test_user_by_login_with_nested_backend(self, pgconn, store):
        pgconn.responder = fixture_responder(
            [['1', 'TestUser0', 'a@b.com', 'hash', '1', 'tok', '123', '0']])

        user = store.get_user_by_login('TestUser0')

        assert user == User(id=1, login='TestUser0', email='a@b.com', password='hash',
                            backend_id=Backend(id=1, address='10.0.0.1:8080', region='eu-west'),
                            token='tok', token_exp=123, status=0)
        assert pgconn.calls[0] == ('SELECT * FROM users WHERE login = $1', [b'TestUser0'])
        assert pgconn.calls[1] == ('SELECT * FROM backend WHERE id = $1', [b'1'])

    def test_no_match_gives_default_record(self, pgconn, store):
        pgconn.responder = fixture_responder([])
        assert store.get_user_by_login('TestUser0') == User()
        assert len(pgconn.calls) == 1

    def test_failed_lookup_gives_default_record(self, pgconn, store):
        pgconn.responder = lambda command, values: error_result('ERROR: permission denied')
        assert store.get_user_by_email('a@b.com') == User()

    def test_null_columns_become_defaults(self, pgconn, store):
        pgconn.responder = fixture_responder(
            [['2', 'TestUser1', None, None, None, None, None, None]])
        user = store.get_user_by_id(2)
        assert user.email == ''
        assert user.token_exp == 0
        assert user.backend_id == Backend()

    @pytest.mark.parametrize(('method', 'column'), [
        ('get_user_by_id', 'id'),
        ('get_user_by_token', 'token'),
        ('get_user_by_login', 'login'),
        ('get_user_by_email', 'email'),
    ])
    def test_lookup_queries(self, pgconn, store, method, column):
        pgconn.responder = fixture_responder([])
        getattr(store, method)('value')
        assert pgconn.calls[0][0] == f'SELECT * FROM users WHERE {column} = $1'

    def test_backend_missing(self, pgconn, store):
        pgconn.responder = fixture_responder([], backend_rows=())
        assert store.get_backend_server_by_id(9) == Backend()


class TestWrites:

    def test_update_failure_is_reported_not_raised(self, pgconn, store, caplog):
        pgconn.responder = lambda command, values: error_result('ERROR: could not serialize access')
        user = User(id=1, login='TestUser0', backend_id=Backend(id=1))
        with caplog.at_level(logging.INFO):
            assert store.update_user(user) is False
        assert 'SQL error: ERROR: could not serialize access' in caplog.text
        assert 'Update user FAIL' in caplog.text

    def test_update_parameters(self, pgconn, store):
        user = User(id=7, login='l', email='e', password='p', backend_id=Backend(id=3),
                    token='t', token_exp=99, status=2)
        assert store.update_user(user) is True
        command, values = pgconn.calls[0]
        assert '"backendId" = $4' in command
        assert '"tokenExp" = $6' in command
        assert values == [b'l', b'e', b'p', b'3', b't', b'99', b'2', b'7']

    def test_add_user(self, pgconn, store, caplog):
        user = User(login='new', email='n@b.com', password='p', backend_id=Backend(id=1))
        with caplog.at_level(logging.INFO, logger='userstore.users'):
            assert store.add_user(user) is True
        command, values = pgconn.calls[0]
        assert command.strip().startswith('INSERT INTO users')
        assert len(values) == 7
        assert 'Add user OK' in caplog.text

    def test_add_user_failure(self, pgconn, store):
        pgconn.responder = lambda command, values: error_result('ERROR: duplicate key value')
        assert store.add_user(User(login='dup')) is False


class TestRecords:

    def test_default_record(self):
        assert User().to_dict() == {
            'id': 0, 'login': '', 'email': '', 'password': '',
            'backendId': {'id': 0, 'address': '', 'region': ''},
            'token': '', 'tokenExp': 0, 'status': 0,
        }

    def test_dict_round_trip(self):
        user = User(id=1, login='TestUser0', backend_id=Backend(1, 'addr', 'eu'), token_exp=123)
        assert User.from_dict(user.to_dict()) == user

    def test_from_partial_dict(self):
        assert User.from_dict({'login': 'x'}) == User(login='x')


def test_store_closes_connection(pgconn, store):
    with store:
        pass
    assert pgconn.finished == 1


if __name__ == '__main__':
    __import__('pytest').main([__file__])
