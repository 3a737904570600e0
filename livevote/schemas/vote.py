from marshmallow import Schema, fields, validate


class TokenSchema(Schema):
    token = fields.Str(required=True, validate=validate.Length(min=1, max=64))


class BallotSubmitSchema(Schema):
    token = fields.Str(required=True, validate=validate.Length(min=1, max=64))
    candidates = fields.List(fields.Int(), required=True)
    mirror_to_ledger = fields.Bool(load_default=False)


class BallotReceiptSchema(Schema):
    message = fields.Str(required=True)
    voter_serial = fields.Str(required=True)
    session_id = fields.Str(required=True)
    candidates = fields.List(fields.Int(), required=True)
    ledger_tx = fields.List(fields.Str())
