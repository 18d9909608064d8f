"""
Shared fixtures: an app wired to a fake tutoring backend and helpers to log in as any role.
"""
import pytest

from tutorportal import create_app
from tutorportal.api import ApiClient, ApiError, ApiUnauthorized
from tutorportal.auth import sign_role


class FakeBackend:
    """Stands in for the REST API by answering ApiClient.request from canned routes."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, method, path, body=None, status=200):
        self.routes[(method, path)] = (status, body if body is not None else {})

    def request(self, client, method, path, params=None, json=None):
        self.calls.append({'method': method, 'path': path, 'params': params, 'json': json, 'token': client.token})
        status, body = self.routes.get((method, path), (200, {}))
        if status == 401:
            raise ApiUnauthorized(401, body.get('message') or 'Your session has expired. Please log in again.')
        if status >= 400:
            raise ApiError(status, body.get('message') or 'Something went wrong. Please try again.', body.get('code'), body)
        return body

    def called(self, method, path):
        return [call for call in self.calls if call['method'] == method and call['path'] == path]


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend()
    monkeypatch.setattr(ApiClient, 'request', lambda self, method, path, params=None, json=None: fake.request(self, method, path, params, json))
    return fake


@pytest.fixture
def app(backend):
    app = create_app({
        'SECRET_KEY': 'test-secret',
        'API_KEY': 'test-api-key',
        'API_BASE_URL': 'http://backend.test/api',
        'FORCE_HTTPS': False,
        'STRIPE_SECRET_KEY': '',
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(app, client):
    """Log the test client in as ``role`` with a signed role cookie and a session profile."""
    def _login(role='student', token='test-token', **profile):
        user = {'_id': f'{role or "new"}-1', 'name': f'Test {role}', 'email': f'{role}@example.com', 'role': role, 'hasPassword': True}
        user.update(profile)
        client.set_cookie('token', token)
        if role:
            with app.app_context():
                client.set_cookie('user_role', sign_role(role))
        with client.session_transaction() as sess:
            sess['user'] = user
        return user
    return _login
