import pytest
from flask_jwt_extended import create_access_token

from SpendWise.main import create_app
from SpendWise.database import db
from SpendWise.exceptions import CredentialStoreError
from SpendWise.services.credential_store import DatabaseCredentialStore
from SpendWise.controllers.admin import create_admin
from SpendWise.controllers.user import create_user


class FakeCredentialStore(DatabaseCredentialStore):
    """Database-backed store whose dispatch and password updates can be made to fail."""

    def __init__(self):
        super().__init__()
        self.dispatch_failures = 0
        self.dispatch_failures_retryable = True
        self.set_password_failures = 0
        self.dispatch_calls = []
        self.set_password_calls = []
        self.sent_tokens = []
        self.before_set_password = None

    def send_reset_link(self, user_id, request_id):
        self.dispatch_calls.append((user_id, request_id))
        if self.dispatch_failures:
            self.dispatch_failures -= 1
            raise CredentialStoreError("simulated mail outage", retryable=self.dispatch_failures_retryable)
        token = super().send_reset_link(user_id, request_id)
        self.sent_tokens.append(token)
        return token

    def set_password(self, user_id, new_password):
        self.set_password_calls.append(user_id)
        if self.set_password_failures:
            self.set_password_failures -= 1
            raise CredentialStoreError("simulated auth outage")
        if self.before_set_password:
            self.before_set_password(user_id)
        super().set_password(user_id, new_password)


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SECRET_KEY': 'test-secret-key',
    'JWT_SECRET_KEY': 'jwt-test-secret-key-with-enough-bytes',
    'MAIL_HOST': '',
    'CREDENTIAL_STORE_RETRY_ATTEMPTS': 2,
    'CREDENTIAL_STORE_RETRY_DELAY': 0,
}


@pytest.fixture
def store():
    return FakeCredentialStore()


@pytest.fixture
def app(store):
    app = create_app(dict(TEST_CONFIG), credential_store=store)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app):
    return create_admin('admin', 'admin@spendwise.test', 'adminpass', role='support')


@pytest.fixture
def alice(app):
    return create_user('alice', 'alice@spendwise.test', 'OldPass1', full_name='Alice Liddell')


@pytest.fixture
def bob(app):
    return create_user('bob', 'bob@spendwise.test', 'BobPass0', full_name='Bob Builder')


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _headers
