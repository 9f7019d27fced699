import jwt
import pytest

from config import TestConfig
from portal import create_app


def test_login_returns_token_and_profile(client, make_user, make_module):
    cs101 = make_module('CS101')
    make_user('2000000001', 'Student', modules=[(cs101, 'Student')])

    rv = client.post('/api/account/login', json={'username': '2000000001', 'password': 'Pa$$w0rd'})
    assert rv.status_code == 200
    data = rv.get_json()
    assert data['roles'] == ['Student']
    assert data['modules'][0]['module_code'] == 'CS101'
    assert data['token']

    me = client.get('/api/account/me', headers={'Authorization': f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.get_json()['username'] == '2000000001'


def test_login_is_case_insensitive_on_username(client, make_user):
    make_user('Admin', 'Admin')
    assert client.post('/api/account/login', json={'username': 'admin', 'password': 'Pa$$w0rd'}).status_code == 200


def test_login_failures_name_the_field(client, make_user):
    make_user('2000000001', 'Student')

    rv = client.post('/api/account/login', json={'username': '2000000009', 'password': 'Pa$$w0rd'})
    assert rv.status_code == 401
    assert rv.get_json()['errors'] == {'username': 'User number not found.'}

    rv = client.post('/api/account/login', json={'username': '2000000001', 'password': 'wrong'})
    assert rv.status_code == 401
    assert rv.get_json()['errors'] == {'password': 'Invalid password.'}

    rv = client.post('/api/account/login', json={})
    assert rv.get_json()['errors'] == {'username': 'User name is required.'}


def test_bad_or_foreign_tokens_are_rejected(app, client, make_user):
    make_user('2000000001', 'Student')
    forged = jwt.encode({'user_id': 1}, 'another-secret', algorithm='HS256')

    assert client.get('/api/account/me', headers={'Authorization': 'Bearer nonsense'}).status_code == 401
    assert client.get('/api/account/me', headers={'Authorization': f'Bearer {forged}'}).status_code == 401
    assert client.get('/api/account/me', headers={'Authorization': 'Token abc'}).status_code == 401


def test_expired_token(app, client, make_user):
    app.config['TOKEN_MAX_AGE'] = -60
    token = make_user('2000000001', 'Student')
    assert client.get('/api/account/me', headers={'Authorization': f'Bearer {token}'}).status_code == 401


def test_logout_is_an_acknowledgement(client):
    assert client.post('/api/account/logout').get_json()['status'] == 'success'


def test_health(client):
    assert client.get('/api/health').get_json() == {'status': 'ok'}


def test_errors_are_json(client, make_user):
    token = make_user('2000000001', 'Student')
    rv = client.get('/api/admin/all-users', headers={'Authorization': f'Bearer {token}'})
    assert rv.status_code == 403
    assert rv.get_json() == {'status': 'error', 'message': 'You do not have permission to perform this action.'}

    rv = client.get('/api/no-such-endpoint')
    assert rv.status_code == 404
    assert rv.get_json()['status'] == 'error'


def test_app_refuses_to_start_without_a_secret_key():
    class NoSecretConfig(TestConfig):
        SECRET_KEY = None

    with pytest.raises(RuntimeError, match='SECRET_KEY is not set'):
        create_app(NoSecretConfig)
