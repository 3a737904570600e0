import uuid
from typing import Optional, Dict, Any
from flask import request, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, get_jwt
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from ..extensions import db
from ..models.audit_log import AuditLog


def _as_uuid(value) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _optional_actor():
    """
    Returns (user_id, role) or (None, None).
    Voters are anonymous; only admins carry a JWT.
    """
    try:
        verify_jwt_in_request(optional=True)
        claims = get_jwt() or {}
        return get_jwt_identity(), claims.get("role")
    except (JWTExtendedException, PyJWTError):
        return None, None


def audit_log(
    action: str,
    entity_type: Optional[str] = None,
    entity_id=None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Stage an audit row on the current session; the caller commits."""
    user_id, role = _optional_actor()

    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    ua = request.headers.get("User-Agent")

    log = AuditLog(
        actor_user_id=_as_uuid(user_id),
        actor_role=role,
        action=action,
        entity_type=entity_type,
        entity_id=_as_uuid(entity_id),
        ip_address=ip,
        user_agent=ua[:255] if ua else None,
        details=details or None,
    )
    db.session.add(log)


def safe_audit(action: str, entity_type: str, entity_id=None, details: dict | None = None):
    """
    Best-effort audit committed on its own.
    Endpoints must not fail because auditing failed.
    """
    try:
        audit_log(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details or {},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Audit logging failed: %s", action)
