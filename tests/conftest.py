import pytest

from livevote import create_app
from livevote.config import TestConfig
from livevote.extensions import db as _db
from livevote.models.user import User
from livevote.models.voting_session import VotingSession
from livevote.services.store import VoteStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "StrongPass123"


@pytest.fixture
def app():
    app = create_app(TestConfig)
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


@pytest.fixture
def store(app):
    return VoteStore(_db.session, app.extensions["vote_feed"])


@pytest.fixture
def admin_headers(client, db):
    user = User(email=ADMIN_EMAIL, role=User.ROLE_ADMIN)
    user.set_password(ADMIN_PASSWORD)
    db.session.add(user)
    db.session.commit()

    rv = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert rv.status_code == 200
    return {"Authorization": f"Bearer {rv.get_json()['access_token']}"}


@pytest.fixture
def voting(store):
    """Pending session: 10 candidates, pick 3, five voters X001..X005."""
    return store.create_session("Upcoming Filmmakers Award", voter_count=5)


@pytest.fixture
def active_voting(store, voting):
    return store.update_session_status(voting.id, VotingSession.STATUS_ACTIVE, duration_minutes=20)


@pytest.fixture
def voters(store, voting):
    return store.list_voters(voting.id)
