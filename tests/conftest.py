"""Shared fixtures for the Patronat de Festes test suite."""

import pytest

from patronat import create_app
from patronat.auth import SessionContext
from patronat.config import Config
from patronat.extensions import db
from patronat.models import UserRole
from patronat.services.store import get_store
from patronat.services.users import create_user


class TestConfig(Config):
    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SECRET_KEY = 'test-secret-key'
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False
    MAIL_ENABLED = False
    FROM_EMAIL = 'patronat@example.com'
    CONTACT_RECIPIENT = 'patronat@example.com'
    BULK_EMAIL_URL = 'http://mail.test/sendBulkEmails'
    STORE_RETRY_ATTEMPTS = 3
    STORE_RETRY_DELAY = 0
    FANOUT_CONCURRENCY = 1


ADMIN_EMAIL = 'admin@example.com'
USER_EMAIL = 'vecina@example.com'
PASSWORD = 'TestPass123!'


@pytest.fixture
def app(tmp_path):
    """Create and configure a test application instance."""
    app = create_app(TestConfig)
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture
def store(app):
    return get_store()


@pytest.fixture
def admin_ctx():
    return SessionContext(user_id='admin-1', role=UserRole.ADMIN.value, name='Admin', email=ADMIN_EMAIL)


@pytest.fixture
def user_ctx():
    return SessionContext(user_id='user-1', name='Vecina', email=USER_EMAIL)


@pytest.fixture
def admin_user(app):
    """Create an admin account; returns its id."""
    user_id, _ = create_user(ADMIN_EMAIL, PASSWORD, display_name='Admin', role=UserRole.ADMIN.value)
    return user_id


@pytest.fixture
def regular_user(app):
    """Create a regular account; returns its id."""
    user_id, _ = create_user(USER_EMAIL, PASSWORD, display_name='Vecina')
    return user_id


def login(client, email, password=PASSWORD):
    return client.post('/auth/login', json={'email': email, 'password': password})


@pytest.fixture
def admin_client(client, admin_user):
    """Test client logged in as the admin."""
    response = login(client, ADMIN_EMAIL)
    assert response.status_code == 200
    return client


@pytest.fixture
def user_client(client, regular_user):
    """Test client logged in as a regular user."""
    response = login(client, USER_EMAIL)
    assert response.status_code == 200
    return client


@pytest.fixture
def mail_app():
    """The email endpoints deployed on their own."""
    from patronat.blueprints.mail import create_mail_app
    return create_mail_app(TestConfig)
