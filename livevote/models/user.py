import uuid
from sqlalchemy import Uuid
from werkzeug.security import generate_password_hash, check_password_hash
from ..extensions import db
from ..utils.clock import utcnow


class User(db.Model):
    """Administrator account; voters never log in, they present an access token."""
    __tablename__ = "users"

    ROLE_ADMIN = "ADMIN"

    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(30), nullable=False, default=ROLE_ADMIN)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    def set_password(self, raw_password: str) -> None:
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password_hash(self.password_hash, raw_password)
