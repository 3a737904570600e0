from flask import current_app

from ..extensions import db
from ..services.store import VoteStore
from ..services.voter_session import VoterSession


def get_feed():
    return current_app.extensions["vote_feed"]


def get_store() -> VoteStore:
    """Request-scoped store bound to the Flask-SQLAlchemy session and the app's vote feed."""
    return VoteStore(db.session, get_feed())


def get_ledger():
    return current_app.extensions.get("ledger_mirror")


def new_voter_session() -> VoterSession:
    return VoterSession(get_store(), ledger=get_ledger())
