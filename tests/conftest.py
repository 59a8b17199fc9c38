import os
import tempfile

import pytest

_tmpdir = tempfile.mkdtemp(prefix='phantoms-tests-')

# app.py reads its configuration at import time
os.environ.update({
    'DATABASE_URL': 'sqlite:///' + os.path.join(_tmpdir, 'test.db'),
    'SECRET_KEY': 'test-secret-key',
    'SESSION_COOKIE_SECURE': 'false',
    'FORCE_HTTPS': 'false',
    'RATELIMIT_ENABLED': 'false',
    'WTF_CSRF_ENABLED': 'false',
    'BCRYPT_LOG_ROUNDS': '4',
    'SUPER_ADMIN_ID': 'mohit',
    'SUPER_ADMIN_USERNAME': 'mohit',
    'SUPER_ADMIN_EMAIL': 'mohit@mail.com',
    'SUPER_ADMIN_PASSWORD': 'mohit-secret',
    'FIREBASE_PROJECT_ID': 'phantoms-test',
    'GROQ_API_KEY': 'test-groq-key',
    'LOG_FILE': os.path.join(_tmpdir, 'security.log'),
})

import storage  # noqa: E402
from app import app as flask_app, bootstrap_super_admin  # noqa: E402
from models import Role, db  # noqa: E402

SUPER_ADMIN_PASSWORD = 'mohit-secret'
DEFAULT_PASSWORD = 'secret123'


@pytest.fixture
def app():
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        bootstrap_super_admin()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for tests that talk to storage directly (no HTTP)."""
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username, role=Role.SELLER, password=DEFAULT_PASSWORD, **profile):
        with app.app_context():
            user = storage.create_user(username, password, role=role, **profile)
            return user.id
    return _make_user


@pytest.fixture
def login_as(app):
    """Return a fresh test client with a session for ``username``."""
    def _login_as(username, password=DEFAULT_PASSWORD):
        client = app.test_client()
        response = client.post('/api/login', json={'username': username, 'password': password})
        assert response.status_code == 200, response.get_json()
        return client
    return _login_as


@pytest.fixture
def admin_client(login_as):
    return login_as('mohit', SUPER_ADMIN_PASSWORD)


@pytest.fixture
def seller(make_user):
    return make_user('seller1')


@pytest.fixture
def seller_client(seller, login_as):
    return login_as(seller)
