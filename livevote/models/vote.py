import uuid
from sqlalchemy import Uuid
from ..extensions import db
from ..utils.clock import utcnow


class Vote(db.Model):
    __tablename__ = "votes"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)

    session_id = db.Column(Uuid, db.ForeignKey("voting_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_serial = db.Column(db.String(20), nullable=False, index=True)
    candidate_number = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        # A voter can pick each candidate at most once per session
        db.UniqueConstraint("session_id", "voter_serial", "candidate_number", name="uq_votes_session_voter_candidate"),
    )
