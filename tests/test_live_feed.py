import uuid

from livevote.models.vote import Vote
from livevote.services.live_feed import ResultsStream, VoteFeed


def _vote(serial, number, session_id=None):
    return Vote(session_id=session_id, voter_serial=serial, candidate_number=number)


def test_publish_reaches_only_matching_session():
    feed = VoteFeed()
    a, b = uuid.uuid4(), uuid.uuid4()
    got_a, got_b = [], []
    feed.subscribe(a, got_a.append)
    feed.subscribe(b, got_b.append)

    vote = _vote("X001", 4, a)
    feed.publish(a, vote)

    assert got_a == [vote]
    assert got_b == []


def test_unsubscribe_stops_delivery():
    feed = VoteFeed()
    session_id = uuid.uuid4()
    got = []
    sub = feed.subscribe(session_id, got.append)
    assert feed.subscriber_count(session_id) == 1

    sub.unsubscribe()
    sub.unsubscribe()
    feed.publish(session_id, _vote("X001", 1))

    assert got == []
    assert feed.subscriber_count(session_id) == 0


def test_broken_subscriber_does_not_block_others():
    feed = VoteFeed()
    session_id = uuid.uuid4()
    got = []

    def broken(_vote):
        raise RuntimeError("display disconnected")

    feed.subscribe(session_id, broken)
    feed.subscribe(session_id, got.append)

    feed.publish(session_id, _vote("X002", 7))

    assert len(got) == 1


def test_results_stream_pushes_changes_and_unsubscribes():
    feed = VoteFeed()
    session_id = uuid.uuid4()
    votes = []
    stream = ResultsStream(
        feed, session_id, load_votes=lambda: list(votes),
        candidate_count=10, debounce=0.0, reconcile=0.01,
    )

    snapshots = stream.snapshots()
    first = next(snapshots)
    assert first["total_votes"] == 0
    assert len(first["results"]) == 10
    assert feed.subscriber_count(session_id) == 1

    for n in (2, 5, 9):
        vote = _vote("X001", n, session_id)
        votes.append(vote)
        feed.publish(session_id, vote)

    second = next(snapshots)
    assert second["total_votes"] == 3
    assert [w["candidate_number"] for w in second["winners"]] == [2, 5, 9]

    # nothing new: reconciliation yields a keep-alive
    assert next(snapshots) is None

    snapshots.close()
    assert feed.subscriber_count(session_id) == 0


def test_results_stream_reconciles_unpublished_writes():
    feed = VoteFeed()
    session_id = uuid.uuid4()
    votes = []
    stream = ResultsStream(
        feed, session_id, load_votes=lambda: list(votes),
        candidate_count=5, debounce=0.0, reconcile=0.01,
    )
    snapshots = stream.snapshots()
    next(snapshots)

    # written by another process, so no notification
    votes.append(_vote("X004", 3, session_id))

    snapshot = next(snapshots)
    assert snapshot["total_votes"] == 1
    assert snapshot["results"][0]["candidate_number"] == 3
    snapshots.close()
