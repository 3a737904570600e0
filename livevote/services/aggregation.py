"""Vote aggregation and ranking.

Turns the flat list of cast votes for a session into one tally per candidate
and a deterministic ranking for the live display and final results.
Ranking is recomputed from the full vote list every time; nothing here keeps
state between calls.
"""
from typing import Iterable

from ..errors import MalformedVote


def vote_stats(votes: Iterable, candidate_count: int, strict: bool = False) -> dict[int, list[str]]:
    """Group voter serials by candidate number for candidates 1..candidate_count.

    Votes for numbers outside that range are skipped, or raise MalformedVote
    when ``strict`` is set.
    """
    stats: dict[int, list[str]] = {n: [] for n in range(1, candidate_count + 1)}

    for vote in votes:
        voters = stats.get(vote.candidate_number)
        if voters is None:
            if strict:
                raise MalformedVote(
                    details={
                        "candidate_number": vote.candidate_number,
                        "voter_serial": vote.voter_serial,
                        "candidate_count": candidate_count,
                    }
                )
            continue
        voters.append(vote.voter_serial)

    return stats


def rank_results(stats: dict[int, list[str]]) -> list[dict]:
    """Order tallies by vote count descending, ties by ascending candidate number."""
    total = sum(len(voters) for voters in stats.values())

    results = []
    for candidate_number, voters in stats.items():
        count = len(voters)
        pct = (count / total * 100.0) if total > 0 else 0.0
        results.append({
            "candidate_number": candidate_number,
            "vote_count": count,
            "voters": sorted(voters),
            "percentage": round(pct, 2),
        })

    results.sort(key=lambda r: (-r["vote_count"], r["candidate_number"]))
    return results


def aggregate(votes: Iterable, candidate_count: int, strict: bool = False) -> list[dict]:
    return rank_results(vote_stats(votes, candidate_count, strict=strict))


def total_votes(results: list[dict]) -> int:
    return sum(r["vote_count"] for r in results)


def winners(results: list[dict], count: int = 3) -> list[dict]:
    """Prize winners are simply the head of the ranking."""
    return results[:count]


def summarize(votes: Iterable, candidate_count: int, winner_count: int = 3) -> dict:
    """Ranking plus the totals every results view shows."""
    results = aggregate(votes, candidate_count)
    return {
        "total_votes": total_votes(results),
        "results": results,
        "winners": winners(results, winner_count),
    }
