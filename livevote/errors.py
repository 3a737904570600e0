from flask import jsonify, g, current_app
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException


class VotingError(Exception):
    """Base class for voting domain errors.

    Each subclass carries a stable machine code, the HTTP status it maps to
    and a human-readable default message shown to the voter or admin.
    """
    code = "VOTING_ERROR"
    status = 400
    message = "Voting request failed"

    def __init__(self, message: str | None = None, details=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class TokenNotFound(VotingError):
    code = "TOKEN_NOT_FOUND"
    status = 404
    message = "Invalid QR code: no voter matches this token"


class AlreadyVoted(VotingError):
    code = "ALREADY_VOTED"
    status = 409
    message = "This QR code has already been used to vote"


class SessionNotFound(VotingError):
    code = "SESSION_NOT_FOUND"
    status = 404
    message = "Voting session not found"


class SessionNotActive(VotingError):
    code = "SESSION_NOT_ACTIVE"
    status = 403
    message = "Voting is not currently active"


class SessionExpired(VotingError):
    code = "SESSION_EXPIRED"
    status = 403
    message = "Voting has ended"


class IncompleteSelection(VotingError):
    code = "INCOMPLETE_SELECTION"
    message = "Please select exactly the required number of candidates"


class InvalidSelection(VotingError):
    code = "INVALID_SELECTION"
    message = "Selection contains an unknown or duplicate candidate"


class InvalidTransition(VotingError):
    code = "INVALID_TRANSITION"
    message = "Action not allowed in the current state"


class MalformedVote(VotingError):
    code = "MALFORMED_VOTE"
    message = "Vote references a candidate outside the session"


class WriteFailure(VotingError):
    code = "WRITE_FAILURE"
    status = 500
    message = "Error submitting votes. Please try again."


class PartialSubmission(VotingError):
    code = "PARTIAL_SUBMISSION"
    status = 409
    message = "Vote records and voter flags disagree"


class LedgerMirrorFailure(VotingError):
    code = "LEDGER_MIRROR_FAILURE"
    status = 502
    message = "Failed to record vote on the ledger"


def _payload(code: str, message: str, details=None, status=400):
    return (
        jsonify({
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "details": details or None,
            },
            "request_id": getattr(g, "request_id", None),
        }),
        status,
    )


def register_error_handlers(app):
    @app.errorhandler(VotingError)
    def handle_voting_error(e: VotingError):
        current_app.logger.info(
            "Voting error %s request_id=%s: %s", e.code, getattr(g, "request_id", None), e.message
        )
        return _payload(code=e.code, message=e.message, details=e.details, status=e.status)

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return _payload("VALIDATION_ERROR", "Validation error", details=e.messages, status=400)

    # Generic HTTP errors (404, 403, 401, etc.)
    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        desc = e.description

        # Structured error info passed via abort(description=dict)
        if isinstance(desc, dict):
            code = desc.get("code") or e.name.replace(" ", "_").upper()
            message = desc.get("message") or e.name
            details = desc.get("errors") or desc.get("details")
            return _payload(code=code, message=message, details=details, status=e.code or 400)

        return _payload(
            code=e.name.replace(" ", "_").upper(),
            message=desc or e.name,
            details=None,
            status=e.code or 400
        )

    @app.errorhandler(404)
    def handle_404(_):
        return _payload("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(500)
    def handle_500(_):
        # Don't leak internals
        return _payload("INTERNAL_SERVER_ERROR", "An unexpected error occurred", status=500)
