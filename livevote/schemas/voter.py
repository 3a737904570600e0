from marshmallow import Schema, fields, validate


class VoterBulkCreateSchema(Schema):
    count = fields.Int(required=True, validate=validate.Range(min=1, max=5000))


class VoterReadSchema(Schema):
    id = fields.UUID()
    serial = fields.Str()
    access_token = fields.Str()
    has_voted = fields.Bool()
    voted_at = fields.DateTime(allow_none=True)
