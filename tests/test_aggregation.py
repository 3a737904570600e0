import itertools
import random

import pytest

from livevote.errors import MalformedVote
from livevote.models.vote import Vote
from livevote.services.aggregation import aggregate, summarize, total_votes, vote_stats, winners


def _vote(candidate_number, voter_serial):
    return Vote(candidate_number=candidate_number, voter_serial=voter_serial)


def _pairs(results):
    return [(r["candidate_number"], r["vote_count"]) for r in results]


def test_ranked_scenario_three_votes_ten_candidates():
    votes = [_vote(3, "X001"), _vote(3, "X002"), _vote(7, "X003")]

    results = aggregate(votes, 10)

    assert _pairs(results)[:2] == [(3, 2), (7, 1)]
    assert [r["vote_count"] for r in results[2:]] == [0] * 7
    assert len(results) == 10
    assert total_votes(results) == 3
    assert results[0]["voters"] == ["X001", "X002"]


def test_empty_votes_yield_every_candidate_with_zero():
    results = aggregate([], 10)

    assert [r["candidate_number"] for r in results] == list(range(1, 11))
    assert all(r["vote_count"] == 0 and r["voters"] == [] for r in results)
    assert all(r["percentage"] == 0.0 for r in results)
    assert total_votes(results) == 0


def test_total_equals_number_of_votes():
    rng = random.Random(7)
    votes = [_vote(rng.randint(1, 10), f"X{i:03d}") for i in range(1, 61)]

    assert total_votes(aggregate(votes, 10)) == len(votes)


def test_order_independent():
    votes = [_vote(3, "X001"), _vote(3, "X002"), _vote(7, "X003"), _vote(1, "X004"), _vote(7, "X005")]
    expected = aggregate(votes, 10)

    for perm in itertools.permutations(votes):
        assert aggregate(list(perm), 10) == expected


def test_rerun_on_unchanged_votes_is_identical():
    votes = [_vote(5, "X010"), _vote(2, "X003"), _vote(5, "X001")]

    assert aggregate(votes, 10) == aggregate(votes, 10)


def test_ties_break_by_candidate_number():
    votes = [_vote(9, "X001"), _vote(4, "X002"), _vote(6, "X003"), _vote(6, "X004")]

    results = aggregate(votes, 10)

    assert _pairs(results)[:3] == [(6, 2), (4, 1), (9, 1)]
    assert [r["candidate_number"] for r in results[3:]] == [1, 2, 3, 5, 7, 8, 10]


def test_voters_sorted_lexicographically():
    votes = [_vote(2, "X010"), _vote(2, "X002"), _vote(2, "X001")]

    assert aggregate(votes, 10)[0]["voters"] == ["X001", "X002", "X010"]


def test_unknown_candidates_ignored_by_default():
    votes = [_vote(11, "X001"), _vote(0, "X002"), _vote(1, "X003")]

    results = aggregate(votes, 10)

    assert len(results) == 10
    assert total_votes(results) == 1


def test_unknown_candidate_raises_in_strict_mode():
    with pytest.raises(MalformedVote) as exc:
        vote_stats([_vote(1, "X001"), _vote(12, "X002")], 10, strict=True)

    assert exc.value.details["candidate_number"] == 12


def test_percentages_and_winners():
    votes = [_vote(1, "X001"), _vote(1, "X002"), _vote(2, "X003"), _vote(3, "X004")]

    summary = summarize(votes, 5, winner_count=3)

    assert summary["total_votes"] == 4
    assert [w["candidate_number"] for w in summary["winners"]] == [1, 2, 3]
    assert summary["results"][0]["percentage"] == 50.0
    assert winners(summary["results"], 1) == summary["results"][:1]
