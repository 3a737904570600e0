from flask import abort
from marshmallow import ValidationError


def load_or_abort(schema, payload):
    """Deserialize with marshmallow, turning errors into the standard 400 envelope."""
    try:
        return schema.load(payload)
    except ValidationError as err:
        abort(
            400,
            description={
                "code": "VALIDATION_ERROR",
                "message": "Validation error",
                "errors": err.messages,
            },
        )
