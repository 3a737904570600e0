import uuid

from flask import Blueprint, request, current_app
from flasgger import swag_from
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    get_jwt_identity,
    jwt_required,
    get_jwt,
)
from sqlalchemy.exc import SQLAlchemyError

from ...extensions import db
from ...models.token_blocklist import TokenBlocklist
from ...models.user import User
from ...schemas.auth import LoginSchema, UserSchema
from ...utils.audit import audit_log, safe_audit
from ...utils.clock import utcnow
from ...utils.validation import load_or_abort

auth_bp = Blueprint("auth", __name__)

login_schema = LoginSchema()
user_schema = UserSchema()


def _load_user(user_id):
    try:
        return db.session.get(User, uuid.UUID(str(user_id)))
    except ValueError:
        return None


@auth_bp.post("/login")
@swag_from({
    "tags": ["Auth"],
    "summary": "Admin login with email and password",
    "parameters": [{
        "in": "body",
        "name": "body",
        "required": True,
        "schema": {
            "type": "object",
            "properties": {
                "email": {"type": "string", "example": "admin@example.com"},
                "password": {"type": "string", "example": "StrongPass123"},
            },
            "required": ["email", "password"],
        },
    }],
    "responses": {
        200: {"description": "Login successful, tokens returned"},
        400: {"description": "Validation error"},
        401: {"description": "Invalid credentials"},
        403: {"description": "User account not active"},
    },
})
def login():
    payload = load_or_abort(login_schema, request.get_json(silent=True) or {})

    email = payload["email"].lower().strip()
    password = payload["password"]

    try:
        user = User.query.filter_by(email=email).first()

        # Invalid credentials (don't leak which part failed)
        if not user or not user.check_password(password):
            audit_log(
                action="LOGIN_FAILED_INVALID_CREDENTIALS",
                entity_type="AUTH",
                details={"email": email},
            )
            db.session.commit()
            return {"message": "Invalid email or password"}, 401

        if not user.is_active:
            audit_log(
                action="LOGIN_FAILED_INACTIVE_ACCOUNT",
                entity_type="AUTH",
                entity_id=user.id,
                details={"email": user.email},
            )
            db.session.commit()
            return {"message": "Account is not active"}, 403

        claims = {"role": user.role}
        access_token = create_access_token(identity=str(user.id), additional_claims=claims)
        refresh_token = create_refresh_token(identity=str(user.id), additional_claims=claims)

        user.last_login_at = utcnow()
        audit_log(
            action="LOGIN_SUCCESS",
            entity_type="AUTH",
            entity_id=user.id,
            details={"email": user.email, "role": user.role},
        )
        db.session.commit()

        return {
            "message": "Login successful",
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "user": user_schema.dump(user),
        }, 200

    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error during login")
        return {"message": "Authentication service error. Please try again."}, 500


@auth_bp.post("/refresh")
@jwt_required(refresh=True)
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Refresh access token (requires refresh token)",
    "responses": {200: {"description": "New access token issued"}, 401: {"description": "Unauthorized"}},
})
def refresh():
    user = _load_user(get_jwt_identity())
    if not user or not user.is_active:
        return {"message": "User inactive or not found"}, 401

    access = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
    safe_audit(action="TOKEN_REFRESHED", entity_type="AUTH", entity_id=user.id)
    return {"access_token": access}, 200


@auth_bp.get("/me")
@jwt_required()
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Current admin profile",
    "responses": {200: {"description": "User profile"}, 401: {"description": "Unauthorized"}, 404: {}},
})
def me():
    user = _load_user(get_jwt_identity())
    if not user:
        return {"message": "User not found"}, 404
    return {"user": user_schema.dump(user)}, 200


def _revoke_current_token(action: str, message: str):
    jti = (get_jwt() or {}).get("jti")
    if not jti:
        return {"message": "Invalid token"}, 400

    try:
        db.session.add(TokenBlocklist(jti=jti))
        audit_log(action=action, entity_type="AUTH", details={"user_id": str(get_jwt_identity()), "jti": jti})
        db.session.commit()
        return {"message": message}, 200
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("DB error during %s", action)
        return {"message": "Logout failed"}, 500


@auth_bp.post("/logout")
@jwt_required()
@swag_from({
    "tags": ["Auth"],
    "security": [{"BearerAuth": []}],
    "summary": "Logout (revoke access token)",
    "responses": {200: {"description": "Logged out"}, 401: {"description": "Unauthorized"}},
})
def logout():
    return _revoke_current_token("LOGOUT_ACCESS", "Logged out successfully")


@auth_bp.post("/logout/refresh")
@jwt_required(refresh=True)
def logout_refresh():
    return _revoke_current_token("LOGOUT_REFRESH", "Refresh token revoked")
