import csv
import io

from flask import Blueprint, Response, request, current_app
from flasgger import swag_from
from sqlalchemy.exc import SQLAlchemyError

from ...models.audit_log import AuditLog
from ...models.voting_session import VotingSession
from ...schemas.candidate import CandidateReadSchema, CandidateReplaceSchema
from ...schemas.session import SessionCreateSchema, SessionReadSchema, SessionStartSchema
from ...schemas.voter import VoterBulkCreateSchema, VoterReadSchema
from ...utils.audit import safe_audit
from ...utils.clock import isoformat_z, parse_iso
from ...utils.rbac import admin_required
from ...utils.tokens import vote_url
from ...utils.validation import load_or_abort
from ..deps import get_store
from ..results.routes import build_results

admin_bp = Blueprint("admin", __name__)

session_create_schema = SessionCreateSchema()
session_start_schema = SessionStartSchema()
session_read_schema = SessionReadSchema()
session_read_many_schema = SessionReadSchema(many=True)
candidate_replace_schema = CandidateReplaceSchema()
candidate_read_many_schema = CandidateReadSchema(many=True)
voter_bulk_create_schema = VoterBulkCreateSchema()
voter_read_many_schema = VoterReadSchema(many=True)

SECURED = [{"BearerAuth": []}]


@admin_bp.post("/sessions")
@admin_required
@swag_from({
    "tags": ["Admin"],
    "security": SECURED,
    "summary": "Create a voting session with its voters and placeholder candidates",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "example": "Upcoming Filmmakers Award - Edition 1"},
                "voter_count": {"type": "integer", "example": 150},
                "candidate_count": {"type": "integer", "example": 10},
                "selection_count": {"type": "integer", "example": 3},
            },
            "required": ["name", "voter_count"],
        },
    }],
    "responses": {201: {"description": "Created"}, 400: {"description": "Validation error"}, 403: {}},
})
def create_session():
    payload = load_or_abort(session_create_schema, request.get_json(silent=True) or {})
    config = current_app.config

    voting = get_store().create_session(
        name=payload["name"],
        voter_count=payload["voter_count"],
        candidate_count=payload.get("candidate_count", config["DEFAULT_CANDIDATE_COUNT"]),
        selection_count=payload.get("selection_count", config["DEFAULT_SELECTION_COUNT"]),
    )
    current_app.logger.info("Session %s created with %d voters", voting.id, payload["voter_count"])

    safe_audit(
        action="SESSION_CREATED",
        entity_type="SESSION",
        entity_id=voting.id,
        details={"name": voting.name, "voter_count": payload["voter_count"]},
    )
    return {"session": session_read_schema.dump(voting)}, 201


@admin_bp.get("/sessions")
@admin_required
@swag_from({"tags": ["Admin"], "security": SECURED, "summary": "List all sessions", "responses": {200: {}}})
def list_sessions():
    sessions = get_store().list_sessions()
    return {"sessions": session_read_many_schema.dump(sessions)}, 200


@admin_bp.get("/sessions/<uuid:session_id>")
@admin_required
@swag_from({"tags": ["Admin"], "security": SECURED, "summary": "Session details with candidates", "responses": {200: {}, 404: {}}})
def get_session(session_id):
    store = get_store()
    voting = store.require_session(session_id)
    return {
        "session": session_read_schema.dump(voting),
        "candidates": candidate_read_many_schema.dump(store.list_candidates(voting.id)),
        "remaining_seconds": voting.remaining_seconds(),
    }, 200


def _transition(session_id, status: str, action: str, **kwargs):
    voting = get_store().update_session_status(session_id, status, **kwargs)
    current_app.logger.info("Session %s -> %s", session_id, voting.status)
    safe_audit(
        action=action,
        entity_type="SESSION",
        entity_id=voting.id,
        details={"to_status": voting.status, "voting_ends_at": isoformat_z(voting.voting_ends_at)},
    )
    return {"session": session_read_schema.dump(voting)}, 200


@admin_bp.post("/sessions/<uuid:session_id>/start")
@admin_required
@swag_from({
    "tags": ["Admin"],
    "security": SECURED,
    "summary": "Start voting (pending -> active) with a countdown",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": False,
        "schema": {"type": "object", "properties": {"duration_minutes": {"type": "integer", "example": 20}}},
    }],
    "responses": {200: {}, 400: {"description": "Not pending"}, 404: {}},
})
def start_session(session_id):
    payload = load_or_abort(session_start_schema, request.get_json(silent=True) or {})
    duration = payload.get("duration_minutes", current_app.config["VOTING_DURATION_MINUTES"])
    return _transition(session_id, VotingSession.STATUS_ACTIVE, "SESSION_STARTED", duration_minutes=duration)


@admin_bp.post("/sessions/<uuid:session_id>/close")
@admin_required
@swag_from({"tags": ["Admin"], "security": SECURED, "summary": "Close voting (active -> closed)", "responses": {200: {}, 400: {}, 404: {}}})
def close_session(session_id):
    return _transition(session_id, VotingSession.STATUS_CLOSED, "SESSION_CLOSED")


@admin_bp.post("/sessions/<uuid:session_id>/reset")
@admin_required
@swag_from({
    "tags": ["Admin"],
    "security": SECURED,
    "summary": "Reset session: delete all votes, clear voter flags, back to pending",
    "responses": {200: {}, 404: {}},
})
def reset_session(session_id):
    store = get_store()
    summary = store.reset_session(session_id)
    voting = store.require_session(session_id)
    current_app.logger.warning("Session %s reset: %s", session_id, summary)

    safe_audit(action="SESSION_RESET", entity_type="SESSION", entity_id=voting.id, details=summary)
    return {"session": session_read_schema.dump(voting), **summary}, 200


@admin_bp.put("/sessions/<uuid:session_id>/candidates")
@admin_required
@swag_from({
    "tags": ["Admin"],
    "security": SECURED,
    "summary": "Replace the candidate shortlist (pending sessions only)",
    "responses": {200: {}, 400: {"description": "Bad numbering or session already started"}, 404: {}},
})
def replace_candidates(session_id):
    payload = load_or_abort(candidate_replace_schema, request.get_json(silent=True) or {})
    candidates = get_store().replace_candidates(session_id, payload["candidates"])

    safe_audit(
        action="CANDIDATES_REPLACED",
        entity_type="SESSION",
        entity_id=session_id,
        details={"count": len(candidates)},
    )
    return {"candidates": candidate_read_many_schema.dump(candidates)}, 200


@admin_bp.post("/sessions/<uuid:session_id>/voters")
@admin_required
@swag_from({"tags": ["Admin"], "security": SECURED, "summary": "Issue additional voter tokens", "responses": {201: {}, 400: {}, 404: {}}})
def add_voters(session_id):
    payload = load_or_abort(voter_bulk_create_schema, request.get_json(silent=True) or {})
    voters = get_store().bulk_create_voters(session_id, payload["count"])

    safe_audit(
        action="VOTERS_CREATED",
        entity_type="SESSION",
        entity_id=session_id,
        details={"count": len(voters), "first": voters[0].serial, "last": voters[-1].serial},
    )
    return {"voters": voter_read_many_schema.dump(voters)}, 201


@admin_bp.get("/sessions/<uuid:session_id>/voters")
@admin_required
@swag_from({"tags": ["Admin"], "security": SECURED, "summary": "Voters and who has voted", "responses": {200: {}, 404: {}}})
def list_voters(session_id):
    store = get_store()
    voting = store.require_session(session_id)
    voters = store.list_voters(voting.id)
    voted = sum(1 for v in voters if v.has_voted)
    return {
        "total": len(voters),
        "voted": voted,
        "pending": len(voters) - voted,
        "voters": voter_read_many_schema.dump(voters),
    }, 200


@admin_bp.get("/sessions/<uuid:session_id>/voters.csv")
@admin_required
@swag_from({
    "tags": ["Admin"],
    "security": SECURED,
    "summary": "Download voter IDs, QR tokens and vote links as CSV",
    "produces": ["text/csv"],
    "responses": {200: {}, 404: {}},
})
def export_voters(session_id):
    store = get_store()
    voting = store.require_session(session_id)
    base_url = current_app.config["VOTE_BASE_URL"]

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["Voter ID", "QR Token", "Vote URL"])
    for voter in store.list_voters(voting.id):
        writer.writerow([voter.serial, voter.access_token, vote_url(base_url, voter.access_token)])

    safe_audit(action="VOTERS_EXPORTED", entity_type="SESSION", entity_id=voting.id)
    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=qr-codes.csv"},
    )


@admin_bp.get("/sessions/<uuid:session_id>/results")
@admin_required
@swag_from({"tags": ["Admin"], "security": SECURED, "summary": "Ranked results (any status)", "responses": {200: {}, 404: {}}})
def session_results(session_id):
    store = get_store()
    voting = store.require_session(session_id)
    return build_results(store, voting), 200


@admin_bp.get("/sessions/<uuid:session_id>/consistency")
@admin_required
@swag_from({
    "tags": ["Admin"],
    "security": SECURED,
    "summary": "Check that every voted flag matches a full set of votes",
    "responses": {200: {"description": "Consistent"}, 409: {"description": "Partial submissions found"}},
})
def consistency(session_id):
    get_store().assert_consistent(session_id)
    return {"consistent": True}, 200


@admin_bp.get("/audit-logs")
@admin_required
@swag_from({
    "tags": ["Admin"],
    "security": SECURED,
    "summary": "Query audit logs",
    "parameters": [
        {"in": "query", "name": "action", "type": "string", "required": False},
        {"in": "query", "name": "entity_type", "type": "string", "required": False},
        {"in": "query", "name": "from", "type": "string", "required": False, "description": "ISO date-time"},
        {"in": "query", "name": "to", "type": "string", "required": False, "description": "ISO date-time"},
        {"in": "query", "name": "limit", "type": "integer", "required": False, "default": 50},
        {"in": "query", "name": "offset", "type": "integer", "required": False, "default": 0},
    ],
    "responses": {200: {"description": "Logs"}, 400: {"description": "Bad request"}, 403: {"description": "Forbidden"}}
})
def audit_logs():
    action = request.args.get("action")
    entity_type = request.args.get("entity_type")
    from_dt = request.args.get("from")
    to_dt = request.args.get("to")

    try:
        limit = min(int(request.args.get("limit", 50)), 200)
        offset = int(request.args.get("offset", 0))
    except ValueError:
        return {"message": "Invalid limit/offset"}, 400

    q = AuditLog.query

    if action:
        q = q.filter(AuditLog.action == action)
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)

    try:
        if from_dt:
            q = q.filter(AuditLog.created_at >= parse_iso(from_dt))
        if to_dt:
            q = q.filter(AuditLog.created_at <= parse_iso(to_dt))
    except ValueError:
        return {"message": "Invalid from/to datetime. Use ISO format."}, 400

    try:
        total = q.count()
        logs = (
            q.order_by(AuditLog.created_at.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
    except SQLAlchemyError:
        current_app.logger.exception("DB error querying audit logs")
        return {"message": "Failed to query audit logs"}, 500

    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "logs": [
            {
                "id": str(entry.id),
                "created_at": isoformat_z(entry.created_at),
                "actor_user_id": str(entry.actor_user_id) if entry.actor_user_id else None,
                "actor_role": entry.actor_role,
                "action": entry.action,
                "entity_type": entry.entity_type,
                "entity_id": str(entry.entity_id) if entry.entity_id else None,
                "ip_address": entry.ip_address,
                "user_agent": entry.user_agent,
                "details": entry.details,
            }
            for entry in logs
        ],
    }, 200
