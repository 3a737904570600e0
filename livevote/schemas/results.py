from marshmallow import Schema, fields


class CandidateResultSchema(Schema):
    candidate_number = fields.Int(required=True)
    title = fields.Str(allow_none=True)
    vote_count = fields.Int(required=True)
    percentage = fields.Float(required=True)
    voters = fields.List(fields.Str(), required=True)


class SessionResultsSchema(Schema):
    session_id = fields.UUID(required=True)
    name = fields.Str(required=True)
    status = fields.Str(required=True)
    total_votes = fields.Int(required=True)
    voters_voted = fields.Int(required=True)
    results = fields.List(fields.Nested(CandidateResultSchema), required=True)
    winners = fields.List(fields.Nested(CandidateResultSchema), required=True)
    voting_ends_at = fields.DateTime(allow_none=True)
    voting_ended_at = fields.DateTime(allow_none=True)
