# tests/conftest.py

import pytest

from app import create_app
from config import TestingConfig

from .fakes import FakeBackend


@pytest.fixture()
def app():
    """App wired to the real SQL backend on an in-memory SQLite database."""
    app = create_app(TestingConfig)
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def fake_backend():
    return FakeBackend()


@pytest.fixture()
def fake_app(fake_backend):
    """App whose backend is the in-memory FakeBackend."""
    return create_app(TestingConfig, backend=fake_backend)


@pytest.fixture()
def register(client):
    """Sign up a user through the API and return the response JSON."""

    def _register(email='ada@example.com', password='secret123', name='Ada Lovelace'):
        response = client.post('/auth/signup', json={
            'email': email,
            'password': password,
            'name': name
        })
        return response

    return _register


@pytest.fixture()
def auth_headers(client, register):
    """Sign up + sign in, return Authorization headers for that user."""

    def _auth_headers(email='ada@example.com', password='secret123', name='Ada Lovelace'):
        register(email=email, password=password, name=name)
        response = client.post('/auth/signin', json={'email': email, 'password': password})
        assert response.status_code == 200, response.get_json()
        token = response.get_json()['data']['access_token']
        return {'Authorization': f'Bearer {token}'}

    return _auth_headers
