import secrets
from urllib.parse import urlencode

SERIAL_PREFIX = "X"


def generate_access_token(length: int = 16) -> str:
    """One-time voter token, URL-safe so it can be embedded in a QR link."""
    return secrets.token_urlsafe(length)


def voter_serial(index: int) -> str:
    """Zero-based index -> human-readable serial ('X001', 'X002', ...)."""
    return f"{SERIAL_PREFIX}{index + 1:03d}"


def vote_url(base_url: str, token: str) -> str:
    sep = "&" if "?" in base_url else "?"
    return f"{base_url}{sep}{urlencode({'token': token})}"
