"""
Pytest fixtures for material tracker backend tests.

Provides an in-memory application, a wiped database per test, user and item
factories, and header helpers for the HTTP layer.
"""

import pytest
from tracker import create_app
from tracker.extensions import db
from tracker.models import HistoryEntry, Item, PendingRequest, User
from tracker.services import arbitration_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRACKER_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables for each test."""
    with app.app_context():
        for model in (HistoryEntry, PendingRequest, Item, User):
            db.session.query(model).delete()
        db.session.commit()

        yield db.session

        db.session.rollback()
        db.session.remove()


def _make_user(username: str, role: str = "employee", status: str = "active") -> User:
    user = User(username=username, role=role, status=status)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user("admin", role="admin")


@pytest.fixture(scope='function')
def manager(db_session):
    return _make_user("manager", role="manager")


@pytest.fixture(scope='function')
def alice(db_session):
    """An employee."""
    return _make_user("alice")


@pytest.fixture(scope='function')
def bob(db_session):
    """A second employee."""
    return _make_user("bob")


@pytest.fixture(scope='function')
def item(db_session, admin):
    """An available item created through the engine (so it has a 'created' entry)."""
    return arbitration_service.create_item(admin, "Cordless drill", "SN-0001", "18V, two batteries")


def _actor_headers(user: User) -> dict:
    return {'X-User-Id': str(user.id)}


@pytest.fixture
def make_user(db_session):
    """Factory for extra users beyond the named fixtures."""
    return _make_user


@pytest.fixture
def actor_headers():
    """Helper to create the identity header the gateway forwards."""
    return _actor_headers
