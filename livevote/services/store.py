"""Persistence gateway for sessions, candidates, voters and votes.

Components receive a VoteStore explicitly instead of reaching for a global
session. Every write method commits (or rolls back) its own transaction, and
committed vote inserts are published to the vote feed.
"""
import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import (
    AlreadyVoted,
    IncompleteSelection,
    InvalidSelection,
    InvalidTransition,
    PartialSubmission,
    SessionExpired,
    SessionNotActive,
    SessionNotFound,
    TokenNotFound,
    WriteFailure,
)
from ..models.candidate import Candidate
from ..models.vote import Vote
from ..models.voter import Voter
from ..models.voting_session import VotingSession
from ..utils.clock import utcnow
from ..utils.tokens import generate_access_token, voter_serial
from .live_feed import VoteFeed

logger = logging.getLogger(__name__)


class VoteStore:
    def __init__(self, session, feed: VoteFeed | None = None):
        self.session = session
        self.feed = feed

    # ---- reads ----

    def find_voter_by_token(self, token: str):
        if not token:
            return None
        return self.session.query(Voter).filter_by(access_token=token.strip()).first()

    def get_session(self, session_id):
        return self.session.get(VotingSession, session_id)

    def require_session(self, session_id) -> VotingSession:
        voting = self.get_session(session_id)
        if voting is None:
            raise SessionNotFound()
        return voting

    def list_sessions(self):
        return self.session.query(VotingSession).order_by(VotingSession.created_at.desc()).all()

    def get_active_session(self):
        return (
            self.session.query(VotingSession)
            .filter_by(status=VotingSession.STATUS_ACTIVE)
            .order_by(VotingSession.voting_started_at.desc())
            .first()
        )

    def get_latest_closed_session(self):
        return (
            self.session.query(VotingSession)
            .filter_by(status=VotingSession.STATUS_CLOSED)
            .order_by(VotingSession.voting_ended_at.desc())
            .first()
        )

    def list_candidates(self, session_id):
        return (
            self.session.query(Candidate)
            .filter_by(session_id=session_id)
            .order_by(Candidate.candidate_number.asc())
            .all()
        )

    def list_votes(self, session_id):
        return (
            self.session.query(Vote)
            .filter_by(session_id=session_id)
            .order_by(Vote.created_at.asc())
            .all()
        )

    def list_voters(self, session_id):
        return (
            self.session.query(Voter)
            .filter_by(session_id=session_id)
            .order_by(Voter.serial.asc())
            .all()
        )

    def subscribe_to_new_votes(self, session_id, on_insert):
        if self.feed is None:
            raise RuntimeError("VoteStore was created without a vote feed")
        return self.feed.subscribe(session_id, on_insert)

    # ---- voting writes ----

    def insert_votes(self, batch: list[Vote]) -> list[Vote]:
        try:
            self.session.add_all(batch)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise AlreadyVoted()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error inserting %d votes", len(batch))
            raise WriteFailure()
        self._publish(batch)
        return batch

    def mark_voted(self, voter_id, timestamp=None) -> None:
        try:
            self._flag_voter(voter_id, timestamp or utcnow())
            self.session.commit()
        except AlreadyVoted:
            self.session.rollback()
            raise
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error marking voter %s as voted", voter_id)
            raise WriteFailure()

    def submit_ballot(self, voter_id, candidate_numbers, now=None) -> list[Vote]:
        """Write a voter's K votes and flag the voter in one transaction.

        Everything the voter's device checked is re-checked here against the
        server clock, so a retry after a lost response or a submit racing the
        deadline cannot double-count or land late.
        """
        now = now or utcnow()

        voter = self.session.get(Voter, voter_id)
        if voter is None:
            raise TokenNotFound()
        if voter.has_voted:
            raise AlreadyVoted()

        voting = voter.voting_session
        if voting.status != VotingSession.STATUS_ACTIVE:
            raise SessionNotActive()
        if not voting.is_open(now):
            raise SessionExpired()

        numbers = validate_selection(candidate_numbers, voting.candidate_count, voting.selection_count)

        try:
            votes = [
                Vote(session_id=voting.id, voter_serial=voter.serial, candidate_number=n, created_at=now)
                for n in numbers
            ]
            self.session.add_all(votes)
            self._flag_voter(voter.id, now)
            self.session.commit()
        except AlreadyVoted:
            self.session.rollback()
            raise
        except IntegrityError:
            self.session.rollback()
            raise AlreadyVoted()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error submitting ballot for voter %s", voter.serial)
            raise WriteFailure()

        logger.info("Ballot recorded session=%s voter=%s candidates=%s", voting.id, voter.serial, numbers)
        self._publish(votes)
        return votes

    def _flag_voter(self, voter_id, now) -> None:
        # Conditional update: only one concurrent submission can flip the flag
        result = self.session.execute(
            update(Voter)
            .where(Voter.id == voter_id, Voter.has_voted.is_(False))
            .values(has_voted=True, voted_at=now)
        )
        if result.rowcount != 1:
            raise AlreadyVoted()

    def _publish(self, votes) -> None:
        if self.feed is None:
            return
        for vote in votes:
            self.feed.publish(vote.session_id, vote)

    # ---- administrative writes ----

    def create_session(self, name: str, voter_count: int, candidate_count: int = 10,
                       selection_count: int = 3) -> VotingSession:
        if selection_count > candidate_count:
            raise InvalidSelection("Selection count cannot exceed the number of candidates")

        voting = VotingSession(
            name=name.strip(),
            status=VotingSession.STATUS_PENDING,
            candidate_count=candidate_count,
            selection_count=selection_count,
        )
        try:
            self.session.add(voting)
            self.session.flush()

            for n in range(1, candidate_count + 1):
                self.session.add(Candidate(session_id=voting.id, candidate_number=n, title=f"Film {n}"))
            self._add_voters(voting.id, start=0, count=voter_count)

            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error creating session %r", name)
            raise WriteFailure("Failed to create session")
        return voting

    def update_session_status(self, session_id, status: str, now=None, duration_minutes: int = 20) -> VotingSession:
        """Apply a lifecycle transition: pending -> active -> closed, or back to pending.

        Going back to pending is a full reset: votes and voter flags go with it.
        """
        voting = self.require_session(session_id)
        if status == VotingSession.STATUS_PENDING:
            self.reset_session(voting.id)
            return voting

        try:
            if status == VotingSession.STATUS_ACTIVE:
                voting.start(duration_minutes, now=now)
            elif status == VotingSession.STATUS_CLOSED:
                voting.close(now=now)
            else:
                raise ValueError(f"Unknown status {status!r}")
        except ValueError as e:
            raise InvalidTransition(str(e))

        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error updating session %s to %s", session_id, status)
            raise WriteFailure("Failed to update session")
        return voting

    def bulk_create_voters(self, session_id, count: int) -> list[Voter]:
        voting = self.require_session(session_id)
        start = self.session.query(func.count(Voter.id)).filter_by(session_id=voting.id).scalar() or 0
        try:
            voters = self._add_voters(voting.id, start=start, count=count)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error creating %d voters for session %s", count, session_id)
            raise WriteFailure("Failed to create voters")
        return voters

    def _add_voters(self, session_id, start: int, count: int) -> list[Voter]:
        voters = [
            Voter(session_id=session_id, serial=voter_serial(i), access_token=generate_access_token())
            for i in range(start, start + count)
        ]
        self.session.add_all(voters)
        return voters

    def replace_candidates(self, session_id, candidates: list[dict]) -> list[Candidate]:
        voting = self.require_session(session_id)
        if voting.status != VotingSession.STATUS_PENDING:
            raise InvalidTransition("Candidates can only be changed before voting starts")

        numbers = sorted(c["candidate_number"] for c in candidates)
        if numbers != list(range(1, voting.candidate_count + 1)):
            raise InvalidSelection(
                f"Candidates must be numbered 1..{voting.candidate_count} exactly once",
                details={"candidate_numbers": numbers},
            )

        try:
            voting.candidates.clear()
            self.session.flush()
            for data in candidates:
                self.session.add(Candidate(session_id=voting.id, **data))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error replacing candidates for session %s", session_id)
            raise WriteFailure("Failed to update candidates")
        return self.list_candidates(voting.id)

    def delete_all_votes(self, session_id) -> int:
        try:
            deleted = self._delete_votes(session_id)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error deleting votes for session %s", session_id)
            raise WriteFailure("Failed to delete votes")
        return deleted

    def reset_voter_flags(self, session_id) -> int:
        try:
            cleared = self._clear_flags(session_id)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error resetting voters for session %s", session_id)
            raise WriteFailure("Failed to reset voters")
        return cleared

    def reset_session(self, session_id) -> dict:
        """Delete votes, clear voter flags and return the session to pending, all or nothing."""
        voting = self.require_session(session_id)
        try:
            deleted = self._delete_votes(voting.id)
            cleared = self._clear_flags(voting.id)
            voting.reset()
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("DB error resetting session %s", session_id)
            raise WriteFailure("Failed to reset session")
        return {"votes_deleted": deleted, "voters_reset": cleared}

    def _delete_votes(self, session_id) -> int:
        return self.session.query(Vote).filter_by(session_id=session_id).delete(synchronize_session=False)

    def _clear_flags(self, session_id) -> int:
        return (
            self.session.query(Voter)
            .filter_by(session_id=session_id)
            .update({"has_voted": False, "voted_at": None}, synchronize_session="fetch")
        )

    # ---- integrity ----

    def consistency_report(self, session_id) -> list[dict]:
        """Voters whose flag and vote rows disagree (a partially applied submission)."""
        voting = self.require_session(session_id)
        rows = (
            self.session.query(Vote.voter_serial, func.count(Vote.id))
            .filter(Vote.session_id == voting.id)
            .group_by(Vote.voter_serial)
            .all()
        )
        counts = {serial: int(n) for serial, n in rows}

        issues = []
        for voter in self.list_voters(voting.id):
            n = counts.pop(voter.serial, 0)
            if voter.has_voted and n != voting.selection_count:
                issues.append({"voter_serial": voter.serial, "has_voted": True, "vote_count": n})
            elif not voter.has_voted and n:
                issues.append({"voter_serial": voter.serial, "has_voted": False, "vote_count": n})
        for serial, n in sorted(counts.items()):
            issues.append({"voter_serial": serial, "has_voted": None, "vote_count": n})
        return issues

    def assert_consistent(self, session_id) -> None:
        issues = self.consistency_report(session_id)
        if issues:
            raise PartialSubmission(details={"issues": issues})


def validate_selection(candidate_numbers, candidate_count: int, selection_count: int) -> list[int]:
    """Exactly ``selection_count`` distinct numbers within 1..candidate_count."""
    numbers = list(candidate_numbers)
    if len(numbers) != selection_count:
        raise IncompleteSelection(
            f"Please select exactly {selection_count} candidates",
            details={"selected": len(numbers), "required": selection_count},
        )
    if len(set(numbers)) != len(numbers):
        raise InvalidSelection("Each candidate can only be selected once")
    out_of_range = [n for n in numbers if not 1 <= n <= candidate_count]
    if out_of_range:
        raise InvalidSelection(details={"unknown_candidates": out_of_range})
    return sorted(numbers)
