"""
Common test fixtures for the Culture Connect API tests.

Builds the app from TestingConfig (in-memory SQLite), and provides a
factory fixture that registers users through the API and returns their
JWT so tests can call protected endpoints.
"""
import pytest

from app import create_app
from model import db as _db


@pytest.fixture
def app():
    """Fresh application and schema per test."""
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client):
    """Register a user through the API; returns (user_dict, token)."""
    counter = {"n": 0}

    def _make_user(username=None, **fields):
        counter["n"] += 1
        username = username or f"student{counter['n']}"
        payload = {
            "username": username,
            "email": f"{username}@umn.edu",
            "password": "secret123",
            "name": username.title(),
            "university": "University of Minnesota",
        }
        payload.update(fields)
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        return body["user"], body["token"]

    return _make_user


@pytest.fixture
def make_group(client):
    """Create a group owned by the holder of `token`."""

    def _make_group(token, **fields):
        payload = {"name": "Nepali Student Association", "description": "Culture and food", "category": "Cultural"}
        payload.update(fields)
        resp = client.post("/api/groups", json=payload, headers=auth(token))
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["group"]

    return _make_group
