def swagger_template(app=None):
    title = "Live Voting API"
    version = "1.0.0"

    if app:
        title = app.config.get("SWAGGER_TITLE", title)
        version = app.config.get("SWAGGER_VERSION", version)

    result_entry = {
        "type": "object",
        "properties": {
            "candidate_number": {"type": "integer", "example": 3},
            "title": {"type": "string", "example": "Film 3"},
            "vote_count": {"type": "integer", "example": 2},
            "percentage": {"type": "number", "example": 66.67},
            "voters": {"type": "array", "items": {"type": "string"}, "example": ["X001", "X002"]},
        },
    }

    return {
        "swagger": "2.0",
        "info": {
            "title": title,
            "version": version,
            "description": "QR-token voting with a live ranked display and admin session control.",
        },
        "securityDefinitions": {
            "BearerAuth": {
                "type": "apiKey",
                "name": "Authorization",
                "in": "header",
                "description": "JWT Authorization header: Bearer <token>"
            }
        },
        "definitions": {
            "CandidateResult": result_entry,
            "ErrorResponse": {
                "type": "object",
                "properties": {
                    "success": {"type": "boolean", "example": False},
                    "error": {
                        "type": "object",
                        "properties": {
                            "code": {"type": "string", "example": "ALREADY_VOTED"},
                            "message": {"type": "string", "example": "This QR code has already been used to vote"},
                            "details": {"type": "object"}
                        }
                    },
                    "request_id": {"type": "string"}
                }
            }
        }
    }
