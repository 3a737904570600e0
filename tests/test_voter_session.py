from datetime import timedelta

import pytest

from livevote.errors import (
    AlreadyVoted,
    IncompleteSelection,
    InvalidSelection,
    LedgerMirrorFailure,
    SessionExpired,
    SessionNotActive,
    TokenNotFound,
    WriteFailure,
)
from livevote.models.vote import Vote
from livevote.models.voting_session import VotingSession
from livevote.services.voter_session import VoterSession
from livevote.utils.clock import utcnow


class FakeClock:
    def __init__(self, now=None):
        self.now = now or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeLedger:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def record_vote(self, session_id, voter_serial, candidate_numbers):
        self.calls.append((session_id, voter_serial, list(candidate_numbers)))
        if self.fail:
            raise LedgerMirrorFailure(details={"error": "rpc down"})
        return ["0xabc"]


def _vote_count(db, session_id):
    return db.session.query(Vote).filter_by(session_id=session_id).count()


def _selecting(store, voter, clock=None, ledger=None):
    machine = VoterSession(store, clock=clock or FakeClock(), ledger=ledger)
    machine.present_token(voter.access_token)
    return machine


def test_valid_token_moves_to_selecting(store, active_voting, voters):
    machine = _selecting(store, voters[0])

    assert machine.state == VoterSession.SELECTING
    assert machine.voter.serial == "X001"
    assert [c.candidate_number for c in machine.candidates] == list(range(1, 11))
    assert 0 < machine.remaining_seconds() <= 20 * 60


def test_unknown_token_rejected(store, active_voting):
    machine = VoterSession(store)

    with pytest.raises(TokenNotFound):
        machine.present_token("not-a-token")

    assert machine.state == VoterSession.REJECTED
    assert isinstance(machine.error, TokenNotFound)


@pytest.mark.parametrize("status", ["pending", "active", "closed"])
def test_already_voted_wins_over_session_status(store, db, voting, voters, status):
    store.mark_voted(voters[0].id)
    voting.status = status
    db.session.commit()

    machine = VoterSession(store)
    with pytest.raises(AlreadyVoted):
        machine.present_token(voters[0].access_token)
    assert machine.state == VoterSession.REJECTED


def test_closed_session_blocks_new_voter(store, active_voting, voters):
    store.update_session_status(active_voting.id, VotingSession.STATUS_CLOSED)

    machine = VoterSession(store)
    with pytest.raises(SessionNotActive):
        machine.present_token(voters[1].access_token)
    assert machine.state == VoterSession.REJECTED


def test_pending_session_blocks_voter(store, voting, voters):
    with pytest.raises(SessionNotActive):
        VoterSession(store).present_token(voters[0].access_token)


def test_token_after_deadline_expires_immediately(store, active_voting, voters):
    clock = FakeClock(active_voting.voting_ends_at + timedelta(seconds=1))
    machine = VoterSession(store, clock=clock)

    with pytest.raises(SessionExpired):
        machine.present_token(voters[0].access_token)
    assert machine.state == VoterSession.EXPIRED


def test_selection_capped_at_k(store, active_voting, voters):
    machine = _selecting(store, voters[0])

    assert machine.toggle(1)
    assert machine.toggle(2)
    # third pick with two selected is allowed
    assert machine.toggle(3)
    # fourth pick with three selected is refused
    assert machine.toggle(4) is False
    assert machine.selection == [1, 2, 3]


def test_deselect_always_allowed(store, active_voting, voters):
    machine = _selecting(store, voters[0])
    for n in (1, 2, 3):
        machine.toggle(n)

    assert machine.toggle(2)
    assert machine.selection == [1, 3]
    assert machine.toggle(4)
    assert machine.selection == [1, 3, 4]


def test_unknown_candidate_rejected(store, active_voting, voters):
    machine = _selecting(store, voters[0])

    with pytest.raises(InvalidSelection):
        machine.toggle(11)
    assert machine.state == VoterSession.SELECTING


def test_submit_below_k_never_touches_store(store, active_voting, voters, monkeypatch):
    machine = _selecting(store, voters[0])
    machine.toggle(1)
    machine.toggle(2)

    def _fail(*args, **kwargs):
        raise AssertionError("store write attempted")

    monkeypatch.setattr(store, "submit_ballot", _fail)

    with pytest.raises(IncompleteSelection):
        machine.submit()
    assert machine.state == VoterSession.SELECTING


def test_countdown_expiry_discards_partial_selection(store, db, active_voting, voters):
    clock = FakeClock()
    machine = _selecting(store, voters[0], clock=clock)
    machine.toggle(4)
    machine.toggle(8)

    clock.now = active_voting.voting_ends_at
    assert machine.tick() == 0

    assert machine.state == VoterSession.EXPIRED
    assert machine.selection == []
    with pytest.raises(SessionExpired):
        machine.submit()
    assert _vote_count(db, active_voting.id) == 0
    assert voters[0].has_voted is False


def test_admin_close_mid_selection_expires_voter(store, db, active_voting, voters):
    machine = _selecting(store, voters[0])
    for n in (1, 2, 3):
        machine.toggle(n)

    store.update_session_status(active_voting.id, VotingSession.STATUS_CLOSED)

    with pytest.raises(SessionExpired):
        machine.submit()
    assert machine.state == VoterSession.EXPIRED
    assert _vote_count(db, active_voting.id) == 0


def test_successful_submission(store, db, active_voting, voters):
    machine = _selecting(store, voters[2])
    for n in (7, 3, 9):
        machine.toggle(n)

    receipt = machine.submit()

    assert machine.state == VoterSession.COMPLETED
    assert receipt["voter_serial"] == "X003"
    assert receipt["candidates"] == [3, 7, 9]
    assert receipt["ledger_tx"] == []

    rows = db.session.query(Vote).filter_by(session_id=active_voting.id).all()
    assert sorted(v.candidate_number for v in rows) == [3, 7, 9]
    assert {v.voter_serial for v in rows} == {"X003"}
    db.session.refresh(voters[2])
    assert voters[2].has_voted is True
    assert voters[2].voted_at is not None


def test_second_device_with_same_token_is_rejected(store, db, active_voting, voters):
    first = _selecting(store, voters[0])
    second = _selecting(store, voters[0])
    for n in (1, 2, 3):
        first.toggle(n)
        second.toggle(n + 3)

    first.submit()
    with pytest.raises(AlreadyVoted):
        second.submit()

    assert second.state == VoterSession.REJECTED
    assert _vote_count(db, active_voting.id) == 3


def test_write_failure_rejects(store, active_voting, voters, monkeypatch):
    machine = _selecting(store, voters[0])
    for n in (1, 2, 3):
        machine.toggle(n)

    def _boom(*args, **kwargs):
        raise WriteFailure()

    monkeypatch.setattr(store, "submit_ballot", _boom)

    with pytest.raises(WriteFailure):
        machine.submit()
    assert machine.state == VoterSession.REJECTED
    assert isinstance(machine.error, WriteFailure)


def test_ledger_mirror_on_completion(store, active_voting, voters):
    ledger = FakeLedger()
    machine = _selecting(store, voters[0], ledger=ledger)
    for n in (5, 1, 2):
        machine.toggle(n)

    receipt = machine.submit(mirror_to_ledger=True)

    assert receipt["ledger_tx"] == ["0xabc"]
    assert ledger.calls == [(active_voting.id, "X001", [1, 2, 5])]


def test_ledger_failure_does_not_undo_vote(store, db, active_voting, voters):
    ledger = FakeLedger(fail=True)
    machine = _selecting(store, voters[0], ledger=ledger)
    for n in (1, 2, 3):
        machine.toggle(n)

    receipt = machine.submit(mirror_to_ledger=True)

    assert machine.state == VoterSession.COMPLETED
    assert receipt["ledger_tx"] == []
    assert _vote_count(db, active_voting.id) == 3


def test_ledger_skipped_when_not_requested(store, active_voting, voters):
    ledger = FakeLedger()
    machine = _selecting(store, voters[0], ledger=ledger)
    for n in (1, 2, 3):
        machine.toggle(n)

    machine.submit()

    assert ledger.calls == []
