from marshmallow import Schema, fields, validate, validates_schema, ValidationError


class SessionCreateSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    voter_count = fields.Int(required=True, validate=validate.Range(min=1, max=5000))
    candidate_count = fields.Int(required=False, validate=validate.Range(min=1, max=100))
    selection_count = fields.Int(required=False, validate=validate.Range(min=1, max=100))

    @validates_schema
    def name_not_blank(self, data, **kwargs):
        if not data.get("name", "").strip():
            raise ValidationError("name cannot be blank", "name")

    @validates_schema
    def selection_within_candidates(self, data, **kwargs):
        candidates = data.get("candidate_count")
        selections = data.get("selection_count")
        if candidates and selections and selections > candidates:
            raise ValidationError("selection_count cannot exceed candidate_count", "selection_count")


class SessionStartSchema(Schema):
    duration_minutes = fields.Int(required=False, validate=validate.Range(min=1, max=24 * 60))


class SessionReadSchema(Schema):
    id = fields.UUID()
    name = fields.Str()
    status = fields.Str()
    candidate_count = fields.Int()
    selection_count = fields.Int()
    created_at = fields.DateTime()
    voting_started_at = fields.DateTime(allow_none=True)
    voting_ends_at = fields.DateTime(allow_none=True)
    voting_ended_at = fields.DateTime(allow_none=True)
