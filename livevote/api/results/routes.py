import json

from flask import Blueprint, Response, current_app, stream_with_context
from flasgger import swag_from
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ...errors import SessionNotFound
from ...extensions import db
from ...models.voter import Voter
from ...schemas.candidate import CandidateReadSchema
from ...schemas.results import SessionResultsSchema
from ...schemas.session import SessionReadSchema
from ...services.aggregation import summarize
from ...services.live_feed import ResultsStream
from ..deps import get_feed, get_store

results_bp = Blueprint("results", __name__)

session_read_schema = SessionReadSchema()
candidate_read_many_schema = CandidateReadSchema(many=True)
session_results_schema = SessionResultsSchema()


def build_results(store, voting) -> dict:
    """Ranked results for a session, with candidate titles attached."""
    summary = summarize(
        store.list_votes(voting.id),
        voting.candidate_count,
        current_app.config["WINNER_COUNT"],
    )
    titles = {c.candidate_number: c.title for c in store.list_candidates(voting.id)}
    for entry in summary["results"]:
        entry["title"] = titles.get(entry["candidate_number"])

    voters_voted = (
        db.session.query(func.count(Voter.id))
        .filter(Voter.session_id == voting.id, Voter.has_voted.is_(True))
        .scalar()
        or 0
    )

    return session_results_schema.dump({
        "session_id": voting.id,
        "name": voting.name,
        "status": voting.status,
        "voting_ends_at": voting.voting_ends_at,
        "voting_ended_at": voting.voting_ended_at,
        "voters_voted": voters_voted,
        **summary,
    })


@results_bp.get("/sessions/active")
@swag_from({
    "tags": ["Results"],
    "summary": "Currently active session (live display)",
    "responses": {200: {"description": "Active session"}, 404: {"description": "No active session"}},
})
def active_session():
    voting = get_store().get_active_session()
    if not voting:
        return {"message": "No active voting session"}, 404
    return {
        "session": session_read_schema.dump(voting),
        "remaining_seconds": voting.remaining_seconds(),
    }, 200


@results_bp.get("/sessions/<uuid:session_id>/candidates")
@swag_from({"tags": ["Results"], "summary": "Candidate shortlist for a session", "responses": {200: {}, 404: {}}})
def session_candidates(session_id):
    store = get_store()
    voting = store.require_session(session_id)
    return {
        "session_id": str(voting.id),
        "candidates": candidate_read_many_schema.dump(store.list_candidates(voting.id)),
    }, 200


@results_bp.get("/sessions/<uuid:session_id>/results")
@swag_from({
    "tags": ["Results"],
    "summary": "Live ranked results for a session",
    "description": "Every candidate is listed, zero-vote ones included, with the voter IDs that picked it.",
    "responses": {200: {"description": "Results"}, 404: {"description": "Session not found"}},
})
def session_results(session_id):
    store = get_store()
    voting = store.require_session(session_id)
    try:
        return build_results(store, voting), 200
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error fetching results for session %s", session_id)
        return {"message": "Failed to fetch results"}, 500


@results_bp.get("/sessions/<uuid:session_id>/results/stream")
@swag_from({
    "tags": ["Results"],
    "summary": "Server-Sent Events feed of ranked results",
    "description": "Pushes a new ranking whenever votes arrive (debounced), with periodic reconciliation.",
    "produces": ["text/event-stream"],
    "responses": {200: {"description": "Event stream"}, 404: {"description": "Session not found"}},
})
def session_results_stream(session_id):
    store = get_store()
    voting = store.require_session(session_id)
    config = current_app.config
    voting_id = voting.id

    def load_votes():
        # End the previous read transaction so votes committed by other requests are visible
        db.session.rollback()
        return store.list_votes(voting_id)

    stream = ResultsStream(
        get_feed(),
        voting_id,
        load_votes=load_votes,
        candidate_count=voting.candidate_count,
        winner_count=config["WINNER_COUNT"],
        debounce=config["RESULTS_DEBOUNCE_SECONDS"],
        reconcile=config["RESULTS_RECONCILE_SECONDS"],
    )

    def events():
        for snapshot in stream.snapshots():
            if snapshot is None:
                yield ": keep-alive\n\n"
                continue
            yield f"event: results\ndata: {json.dumps(snapshot)}\n\n"

    return Response(
        stream_with_context(events()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@results_bp.get("/results/final")
@swag_from({
    "tags": ["Results"],
    "summary": "Final results of the most recently closed session",
    "description": "Full ranking plus the prize winners (top of the ranking).",
    "responses": {200: {"description": "Final results"}, 404: {"description": "No closed session"}},
})
def final_results():
    store = get_store()
    voting = store.get_latest_closed_session()
    if not voting:
        raise SessionNotFound("No completed voting session found")
    return build_results(store, voting), 200
