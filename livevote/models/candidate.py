import uuid
from sqlalchemy import Uuid
from ..extensions import db


class Candidate(db.Model):
    __tablename__ = "candidates"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = db.Column(Uuid, db.ForeignKey("voting_sessions.id", ondelete="CASCADE"), nullable=False, index=True)

    candidate_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    logline = db.Column(db.Text, nullable=True)
    director = db.Column(db.String(200), nullable=True)
    producer = db.Column(db.String(200), nullable=True)
    poster_url = db.Column(db.String(500), nullable=True)

    __table_args__ = (
        db.UniqueConstraint("session_id", "candidate_number", name="uq_candidates_session_number"),
    )
