"""Signed identity tokens for the auth cookie. Login itself happens elsewhere.

Token layout: ``urlsafe_b64(user_id:issued_at)`` + ``.`` + hex HMAC-SHA256 of
the raw payload under ``settings.secret_key``.
"""
import base64
import hmac
import hashlib
import time

from app.core.config import get_settings


def _signature(payload: bytes) -> str:
    key = get_settings().secret_key.encode("utf-8")
    return hmac.new(key, payload, hashlib.sha256).hexdigest()


def _b64decode(encoded: str) -> bytes:
    return base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))


def create_session_token(user_id: str) -> str:
    """Create a signed session token for the user (for auth cookie)."""
    payload = f"{user_id}:{int(time.time())}".encode("utf-8")
    encoded = base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")
    return f"{encoded}.{_signature(payload)}"


def verify_session_token(token: str) -> str | None:
    """Return the user id of a valid, unexpired token; None otherwise."""
    if not token or "." not in token:
        return None
    encoded, sig = token.rsplit(".", 1)
    try:
        payload = _b64decode(encoded)
        if not hmac.compare_digest(_signature(payload), sig):
            return None
        user_id, issued_at = payload.decode("utf-8").rsplit(":", 1)
        age = time.time() - int(issued_at)
    except (ValueError, UnicodeDecodeError):
        return None
    if not user_id or abs(age) > get_settings().auth_cookie_max_age:
        return None
    return user_id
