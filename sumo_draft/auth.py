"""
Stateless sessions: signed JWT (HS256) carried in the session cookie or a Bearer header.
No server-side session store. Admin password checked with passlib when a hash is configured.
"""
from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from sumo_draft.config import DraftSettings

# pbkdf2_sha256: no bcrypt backend needed
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ALGORITHM = "HS256"
SESSION_COOKIE = "session"
ADMIN_SUBJECT = "admin"


@dataclass(frozen=True)
class SessionClaims:
    subject: str  # participant id, or "admin"
    sumo_name: str
    is_admin: bool = False


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def verify_admin_password(plain: str, settings: DraftSettings) -> bool:
    """Prefer the configured hash; fall back to a constant-time compare with the plain setting."""
    if settings.admin_password_hash:
        return verify_password(plain, settings.admin_password_hash)
    if not settings.admin_password:
        return False
    return hmac.compare_digest(plain.encode("utf-8"), settings.admin_password.encode("utf-8"))


def create_session_token(claims: SessionClaims, settings: DraftSettings) -> str:
    expire = datetime.now(timezone.utc) + timedelta(seconds=settings.session_max_age_seconds)
    to_encode = {
        "sub": claims.subject,
        "name": claims.sumo_name,
        "admin": claims.is_admin,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.session_secret, algorithm=ALGORITHM)


def decode_session_token(token: str | None, settings: DraftSettings) -> SessionClaims | None:
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[ALGORITHM])
    except JWTError:
        return None
    sub = payload.get("sub")
    if not sub:
        return None
    return SessionClaims(
        subject=sub,
        sumo_name=payload.get("name") or "",
        is_admin=bool(payload.get("admin", False)),
    )
