"""One voter's path from presenting a token to a recorded ballot.

    unidentified -> validating -> selecting -> submitting -> completed
                        |             |             |
                        v             v             v
                     rejected      expired      rejected / expired

The countdown is evaluated on every interaction (and whenever ``tick`` is
polled); once the session deadline passes while selecting, the machine
expires and the unsubmitted selection is dropped.
"""
import logging
from typing import Callable

from ..errors import (
    AlreadyVoted,
    IncompleteSelection,
    InvalidSelection,
    InvalidTransition,
    LedgerMirrorFailure,
    SessionExpired,
    SessionNotActive,
    TokenNotFound,
    VotingError,
)
from ..models.voting_session import VotingSession
from ..utils.clock import utcnow
from .store import VoteStore

logger = logging.getLogger(__name__)


class VoterSession:
    UNIDENTIFIED = "unidentified"
    VALIDATING = "validating"
    SELECTING = "selecting"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    REJECTED = "rejected"
    EXPIRED = "expired"
    TERMINAL_STATES = (COMPLETED, REJECTED, EXPIRED)

    def __init__(self, store: VoteStore, clock: Callable = utcnow, ledger=None):
        self.store = store
        self.clock = clock
        self.ledger = ledger

        self.state = self.UNIDENTIFIED
        self.voter = None
        self.voting = None
        self.candidates = []
        self.selection: list[int] = []
        self.error: VotingError | None = None
        self.receipt: dict | None = None

    @property
    def selection_count(self) -> int:
        return self.voting.selection_count

    def _require(self, *states):
        if self.state not in states:
            raise InvalidTransition(f"Not allowed while {self.state}")

    def _reject(self, error: VotingError):
        self.state = self.REJECTED
        self.error = error
        raise error

    def _expire(self):
        self.state = self.EXPIRED
        self.error = SessionExpired()
        self.selection = []

    def present_token(self, token: str):
        """Validate an access token; on success the voter may start selecting."""
        self._require(self.UNIDENTIFIED)
        self.state = self.VALIDATING

        voter = self.store.find_voter_by_token(token)
        if voter is None:
            return self._reject(TokenNotFound())
        # Checked before the session so a used code always reads as used
        if voter.has_voted:
            return self._reject(AlreadyVoted())

        voting = voter.voting_session
        if voting is None or voting.status != VotingSession.STATUS_ACTIVE:
            return self._reject(SessionNotActive())

        self.voter = voter
        self.voting = voting
        self.candidates = self.store.list_candidates(voting.id)
        self.state = self.SELECTING

        self.tick()
        if self.state == self.EXPIRED:
            raise self.error
        return voter

    def remaining_seconds(self) -> int:
        if self.voting is None:
            return 0
        return self.voting.remaining_seconds(self.clock())

    def tick(self) -> int:
        """Countdown check; forces expiry once the deadline has passed."""
        if self.state == self.SELECTING and not self.voting.is_open(self.clock()):
            logger.info("Voting time ran out for %s with %d selected", self.voter.serial, len(self.selection))
            self._expire()
        return self.remaining_seconds()

    def _ensure_selecting(self):
        self._require(self.SELECTING)
        self.tick()
        if self.state == self.EXPIRED:
            raise self.error

    def toggle(self, candidate_number: int) -> bool:
        """Select or deselect a candidate.

        Returns False when the selection is refused because the limit is
        already reached; deselecting always succeeds.
        """
        self._ensure_selecting()
        if not 1 <= candidate_number <= self.voting.candidate_count:
            raise InvalidSelection(details={"unknown_candidates": [candidate_number]})

        if candidate_number in self.selection:
            self.selection.remove(candidate_number)
            return True
        if len(self.selection) >= self.selection_count:
            return False
        self.selection.append(candidate_number)
        return True

    def submit(self, mirror_to_ledger: bool = False) -> dict:
        self._ensure_selecting()
        if len(self.selection) != self.selection_count:
            raise IncompleteSelection(
                f"Please select exactly {self.selection_count} candidates",
                details={"selected": len(self.selection), "required": self.selection_count},
            )

        self.state = self.SUBMITTING
        try:
            self.store.submit_ballot(self.voter.id, self.selection, now=self.clock())
        except SessionExpired:
            self._expire()
            raise
        except VotingError as e:
            return self._reject(e)

        self.state = self.COMPLETED
        self.receipt = {
            "voter_serial": self.voter.serial,
            "session_id": str(self.voting.id),
            "candidates": sorted(self.selection),
            "ledger_tx": self._mirror() if mirror_to_ledger else [],
        }
        return self.receipt

    def _mirror(self) -> list[str]:
        if self.ledger is None:
            return []
        try:
            return self.ledger.record_vote(self.voting.id, self.voter.serial, sorted(self.selection))
        except LedgerMirrorFailure as e:
            # The ballot is already committed; the ledger copy is an extra
            logger.warning("Ledger mirror failed for %s: %s", self.voter.serial, e.details)
            return []
