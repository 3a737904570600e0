from flask import Blueprint, request, current_app
from flasgger import swag_from

from ...errors import IncompleteSelection, InvalidSelection, VotingError
from ...schemas.candidate import CandidateReadSchema
from ...schemas.session import SessionReadSchema
from ...schemas.vote import TokenSchema, BallotSubmitSchema, BallotReceiptSchema
from ...services.voter_session import VoterSession
from ...utils.audit import safe_audit
from ...utils.validation import load_or_abort
from ..deps import new_voter_session

voting_bp = Blueprint("voting", __name__)

token_schema = TokenSchema()
ballot_submit_schema = BallotSubmitSchema()
ballot_receipt_schema = BallotReceiptSchema()
candidate_read_many_schema = CandidateReadSchema(many=True)
session_read_schema = SessionReadSchema()


def _audit_rejection(action: str, machine: VoterSession, error: VotingError):
    safe_audit(
        action=action,
        entity_type="VOTE",
        entity_id=machine.voting.id if machine.voting else None,
        details={
            "reason": error.code,
            "state": machine.state,
            "voter_serial": machine.voter.serial if machine.voter else None,
        },
    )


@voting_bp.post("/validate")
@swag_from({
    "tags": ["Voting"],
    "summary": "Validate a scanned or typed QR token",
    "description": "Returns the voter serial, the session, the candidate shortlist and the countdown.",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {"type": "object", "properties": {"token": {"type": "string"}}, "required": ["token"]},
    }],
    "responses": {
        200: {"description": "Voter may start selecting"},
        403: {"description": "Session not active or already ended"},
        404: {"description": "Unknown token"},
        409: {"description": "Token already used"},
    },
})
def validate_token():
    payload = load_or_abort(token_schema, request.get_json(silent=True) or {})

    machine = new_voter_session()
    try:
        voter = machine.present_token(payload["token"])
    except VotingError as e:
        _audit_rejection("VOTER_VALIDATION_REJECTED", machine, e)
        raise

    return {
        "voter_serial": voter.serial,
        "state": machine.state,
        "session": session_read_schema.dump(machine.voting),
        "candidates": candidate_read_many_schema.dump(machine.candidates),
        "selection_count": machine.selection_count,
        "remaining_seconds": machine.remaining_seconds(),
        "poll_interval_seconds": current_app.config["COUNTDOWN_POLL_SECONDS"],
    }, 200


@voting_bp.post("/submit")
@swag_from({
    "tags": ["Voting"],
    "summary": "Submit exactly K selected candidates",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "token": {"type": "string"},
                "candidates": {"type": "array", "items": {"type": "integer"}, "example": [3, 7, 9]},
                "mirror_to_ledger": {"type": "boolean", "example": False},
            },
            "required": ["token", "candidates"],
        },
    }],
    "responses": {
        201: {"description": "Votes recorded"},
        400: {"description": "Wrong number of candidates / unknown candidate"},
        403: {"description": "Session not active or expired"},
        404: {"description": "Unknown token"},
        409: {"description": "Already voted"},
        500: {"description": "Store rejected the write; safe to retry"},
    },
})
def submit_ballot():
    payload = load_or_abort(ballot_submit_schema, request.get_json(silent=True) or {})

    numbers = payload["candidates"]

    machine = new_voter_session()
    try:
        if len(set(numbers)) != len(numbers):
            raise InvalidSelection("Each candidate can only be selected once")
        machine.present_token(payload["token"])
        for number in numbers:
            if not machine.toggle(number):
                raise IncompleteSelection(
                    f"Please select exactly {machine.selection_count} candidates",
                    details={"selected": len(numbers), "required": machine.selection_count},
                )
        receipt = machine.submit(mirror_to_ledger=payload["mirror_to_ledger"])
    except VotingError as e:
        _audit_rejection("VOTE_SUBMIT_REJECTED", machine, e)
        raise

    safe_audit(
        action="VOTE_SUBMITTED",
        entity_type="VOTE",
        entity_id=machine.voting.id,
        details={
            "voter_serial": receipt["voter_serial"],
            "candidates": receipt["candidates"],
            "ledger_tx": receipt["ledger_tx"],
        },
    )

    return ballot_receipt_schema.dump({
        "message": (
            f"Thank you for voting! Your voter ID: {receipt['voter_serial']}. "
            "Look for your ID on the big screen to confirm your votes were counted."
        ),
        **receipt,
    }), 201


@voting_bp.get("/countdown")
@swag_from({
    "tags": ["Voting"],
    "summary": "Remaining voting time for a voter's session",
    "parameters": [{"in": "query", "name": "token", "required": True, "type": "string"}],
    "responses": {200: {"description": "Countdown"}, 403: {}, 404: {}, 409: {}},
})
def countdown():
    payload = load_or_abort(token_schema, {"token": request.args.get("token", "")})

    machine = new_voter_session()
    try:
        machine.present_token(payload["token"])
        expired = False
    except VotingError:
        if machine.state != VoterSession.EXPIRED:
            raise
        expired = True

    return {
        "state": machine.state,
        "expired": expired,
        "remaining_seconds": machine.remaining_seconds(),
    }, 200
