from marshmallow import Schema, fields, validate


class CandidateWriteSchema(Schema):
    candidate_number = fields.Int(required=True, validate=validate.Range(min=1))
    title = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    logline = fields.Str(required=False, allow_none=True)
    director = fields.Str(required=False, allow_none=True, validate=validate.Length(max=200))
    producer = fields.Str(required=False, allow_none=True, validate=validate.Length(max=200))
    poster_url = fields.Url(required=False, allow_none=True)


class CandidateReplaceSchema(Schema):
    candidates = fields.List(fields.Nested(CandidateWriteSchema), required=True, validate=validate.Length(min=1))


class CandidateReadSchema(Schema):
    candidate_number = fields.Int()
    title = fields.Str()
    logline = fields.Str(allow_none=True)
    director = fields.Str(allow_none=True)
    producer = fields.Str(allow_none=True)
    poster_url = fields.Str(allow_none=True)
