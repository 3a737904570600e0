"""In-process vote notifications and the debounced live results stream."""
import logging
import threading
import time
from collections import defaultdict
from typing import Callable

from .aggregation import summarize

logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, feed: "VoteFeed", session_id, callback: Callable):
        self._feed = feed
        self.session_id = session_id
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False


class VoteFeed:
    """Fan-out of committed vote inserts to per-session subscribers.

    Callbacks run on the publishing thread, once per inserted vote.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers = defaultdict(list)

    def subscribe(self, session_id, callback: Callable) -> Subscription:
        sub = Subscription(self, session_id, callback)
        with self._lock:
            self._subscribers[session_id].append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.session_id, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subscribers.pop(sub.session_id, None)

    def subscriber_count(self, session_id) -> int:
        with self._lock:
            return len(self._subscribers.get(session_id, []))

    def publish(self, session_id, vote) -> None:
        with self._lock:
            subs = list(self._subscribers.get(session_id, []))
        for sub in subs:
            try:
                sub.callback(vote)
            except Exception:
                # One broken listener must not stop the others
                logger.exception("Vote subscriber failed for session %s", session_id)


class ResultsStream:
    """Ranked results for one session, recomputed when votes arrive.

    Insert notifications are the primary trigger; bursts are coalesced by
    waiting ``debounce`` seconds before recomputing. If nothing arrives for
    ``reconcile`` seconds the ranking is recomputed anyway, which catches
    writes made by other processes.
    """

    def __init__(self, feed: VoteFeed, session_id, load_votes: Callable, candidate_count: int,
                 winner_count: int = 3, debounce: float = 0.5, reconcile: float = 15.0):
        self.feed = feed
        self.session_id = session_id
        self.load_votes = load_votes
        self.candidate_count = candidate_count
        self.winner_count = winner_count
        self.debounce = debounce
        self.reconcile = reconcile
        self._pending = threading.Event()

    def _on_insert(self, _vote) -> None:
        self._pending.set()

    def _compute(self) -> dict:
        return summarize(self.load_votes(), self.candidate_count, self.winner_count)

    def snapshots(self):
        """Yield the current summary, then each changed summary.

        Yields None when a reconciliation pass found nothing new, so the
        caller can emit a keep-alive.
        """
        sub = self.feed.subscribe(self.session_id, self._on_insert)
        try:
            last = self._compute()
            yield last
            while True:
                notified = self._pending.wait(self.reconcile)
                if notified and self.debounce:
                    time.sleep(self.debounce)
                self._pending.clear()

                current = self._compute()
                if current != last:
                    last = current
                    yield current
                else:
                    yield None
        finally:
            sub.unsubscribe()
