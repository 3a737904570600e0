import uuid
from datetime import timedelta
from sqlalchemy import Uuid
from ..extensions import db
from ..utils.clock import utcnow


class VotingSession(db.Model):
    __tablename__ = "voting_sessions"

    STATUS_PENDING = "pending"
    STATUS_ACTIVE = "active"
    STATUS_CLOSED = "closed"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = db.Column(db.String(200), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)

    # N candidates numbered 1..N, K selections per voter
    candidate_count = db.Column(db.Integer, nullable=False, default=10)
    selection_count = db.Column(db.Integer, nullable=False, default=3)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    voting_started_at = db.Column(db.DateTime, nullable=True)
    voting_ends_at = db.Column(db.DateTime, nullable=True)
    voting_ended_at = db.Column(db.DateTime, nullable=True)

    candidates = db.relationship(
        "Candidate",
        backref="voting_session",
        lazy=True,
        order_by="Candidate.candidate_number",
        cascade="all, delete-orphan",
    )

    def is_open(self, now=None) -> bool:
        if self.status != self.STATUS_ACTIVE:
            return False
        if self.voting_ends_at is None:
            return True
        return (now or utcnow()) < self.voting_ends_at

    def remaining_seconds(self, now=None) -> int:
        if self.voting_ends_at is None:
            return 0
        remaining = (self.voting_ends_at - (now or utcnow())).total_seconds()
        return max(0, int(remaining))

    def start(self, duration_minutes: int, now=None):
        if self.status != self.STATUS_PENDING:
            raise ValueError("Only pending sessions can be started")
        now = now or utcnow()
        self.status = self.STATUS_ACTIVE
        self.voting_started_at = now
        self.voting_ends_at = now + timedelta(minutes=duration_minutes)
        self.voting_ended_at = None

    def close(self, now=None):
        if self.status != self.STATUS_ACTIVE:
            raise ValueError("Only active sessions can be closed")
        self.status = self.STATUS_CLOSED
        self.voting_ended_at = now or utcnow()

    def reset(self):
        self.status = self.STATUS_PENDING
        self.voting_started_at = None
        self.voting_ends_at = None
        self.voting_ended_at = None
