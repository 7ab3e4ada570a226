"""
pytest shared fixtures

Every test gets a fresh app bound to its own in-memory SQLite database.
"""

import pytest

from config import TestConfig
from splitledger import create_app
from splitledger.extensions import db
from splitledger.models import User
from splitledger.services import ledger_store
from splitledger.services.membership_service import create_group


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def make_user(app):
    """Factory: make_user("Asha") -> user id"""
    def _make(name, email=None, password="secret123"):
        user = User(name=name, email=email or f"{name.lower()}@example.com")
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id
    return _make


@pytest.fixture
def trio(make_user):
    """Users A, B, C as a dict of ids; A owns the group."""
    return {name: make_user(name) for name in ("A", "B", "C")}


@pytest.fixture
def group_id(trio):
    group = create_group("Trip", owner_id=trio["A"], member_ids=[trio["B"], trio["C"]])
    return group.id


@pytest.fixture
def balances(group_id):
    """Callable returning the current {user_id: balance} of the test group"""
    return lambda: ledger_store.list_balances(group_id)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """Log the test client in as the given user"""
    def _login(email, password="secret123"):
        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response
    return _login
