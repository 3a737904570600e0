import uuid
from sqlalchemy import Uuid
from ..extensions import db
from ..utils.clock import utcnow


class Voter(db.Model):
    __tablename__ = "voters"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = db.Column(Uuid, db.ForeignKey("voting_sessions.id", ondelete="CASCADE"), nullable=False, index=True)

    # Shown on the public display so voters can find their own votes
    serial = db.Column(db.String(20), nullable=False)
    # Encoded in the voter's QR code
    access_token = db.Column(db.String(64), nullable=False, unique=True, index=True)

    has_voted = db.Column(db.Boolean, nullable=False, default=False)
    voted_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    voting_session = db.relationship("VotingSession", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("session_id", "serial", name="uq_voters_session_serial"),
    )
