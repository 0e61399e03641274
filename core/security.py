# app/core/security.py
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request
from jose import jwt, JWTError
from passlib.context import CryptContext

from core.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    """What a session tells us about the caller. Role is kept raw so that a
    value outside the role enum can still be seen and rejected."""
    user_id: int
    role: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_access_token(user_id: int, role: str, expires_minutes: int = None) -> str:
    """Issue a session token carrying the user id and the role at issue time."""
    if expires_minutes is None:
        expires_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES

    now = datetime.utcnow()
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Identity:
    """Raises JWTError for anything that is not a valid session token."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Not an access token")

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise JWTError("Invalid subject")

    role = payload.get("role")
    return Identity(user_id=user_id, role=role if isinstance(role, str) else "")


def extract_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization")
    if auth:
        scheme, _, value = auth.partition(" ")
        if scheme.lower() == "bearer" and value:
            return value.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def resolve_identity(request: Request) -> Optional[Identity]:
    """Identity of the current request, or None when it is anonymous.

    Any failure while reading the session counts as anonymous.
    """
    token = extract_token(request)
    if not token:
        return None
    try:
        return decode_token(token)
    except JWTError as e:
        logger.warning(f"Invalid session token on {request.url.path}: {e}")
        return None
