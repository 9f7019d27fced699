"""
Shared fixtures: a fresh app on in-memory SQLite per test, a test client,
and factories that create users (returning bearer tokens) and modules.

Factories open their own short app context so that every request made
through the client resolves the current user from its own token.
"""
from datetime import time

import pytest

from config import TestConfig
from portal import create_app, db
from portal.models import ClassSession, Module, Role, User, UserModule


@pytest.fixture
def app(tmp_path):
    class LocalTestConfig(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')
        SEED_DATA_DIR = str(tmp_path / 'seed')

    app = create_app(LocalTestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth():
    def _auth(token):
        return {'Authorization': f'Bearer {token}'}
    return _auth


@pytest.fixture
def make_user(app):
    def _make_user(username, *roles, modules=None, join_date=None, password='Pa$$w0rd'):
        """`modules` is a list of (module_id, role_context) pairs. Returns a bearer token."""
        with app.app_context():
            user = User(username=username, email=f'{username}@example.com', first_name=username.title(),
                        last_name='Tester', join_date=join_date)
            user.set_password(password)
            for name in roles:
                user.roles.append(Role.query.filter_by(name=name).one())
            for module_id, context in modules or []:
                user.module_links.append(UserModule(module_id=module_id, role_context=context))
            db.session.add(user)
            db.session.commit()
            return user.get_token()
    return _make_user


@pytest.fixture
def make_module(app):
    def _make_module(code='CS101', name='Introduction to Programming', semester=1, sessions=None):
        """`sessions` is a list of (venue, week_day, 'HH:MM', 'HH:MM'). Returns the module id."""
        with app.app_context():
            module = Module(module_code=code, module_name=name, semester=semester,
                            is_year_module=semester == 0)
            for venue, week_day, start, end in sessions or []:
                module.class_sessions.append(ClassSession(venue=venue, week_day=week_day,
                                                          start_time=time.fromisoformat(start),
                                                          end_time=time.fromisoformat(end)))
            db.session.add(module)
            db.session.commit()
            return module.id
    return _make_module
