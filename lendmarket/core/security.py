from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from lendmarket.core.settings import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)

SESSION_TOKEN_TYPE = "session"


class TokenError(ValueError):
    """Raised when a session token cannot be trusted."""


class ExpiredTokenError(TokenError):
    pass


@dataclass(frozen=True, slots=True)
class SessionIdentity:
    """Claims carried by a verified session token."""

    email: str
    role: str
    id: str | None = None


def get_password_hash(password: str) -> str:
    min_len = settings.default_password_min_length
    if len(password) < min_len:
        raise ValueError(f"Password too short; minimum {min_len} characters")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_session_token(
    email: str,
    role: str,
    user_id: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.session_token_expire_minutes))
    to_encode: dict[str, Any] = {
        "sub": user_id or email,
        "email": email,
        "role": role,
        "iat": now,
        "exp": expire,
        "jti": str(uuid.uuid4()),
        "type": SESSION_TOKEN_TYPE,
    }
    if user_id is not None:
        to_encode["id"] = user_id
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str) -> SessionIdentity:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise ExpiredTokenError("Token expired") from exc
    except JWTError as exc:
        raise TokenError("Invalid token") from exc
    if payload.get("type") != SESSION_TOKEN_TYPE:
        raise TokenError(f"Unexpected token type: {payload.get('type')}")
    email = payload.get("email")
    role = payload.get("role")
    if not email or not role:
        raise TokenError("Invalid token")
    return SessionIdentity(email=email, role=role, id=payload.get("id"))


# Well-formed bcrypt hash of a random string; verified against when the user
# is absent so both failure paths cost one bcrypt round.
_FAKE_HASH = "$2b$10$CwTycUXWue0Thq9StjUM0uJ8.xJ3vCvBZlG9fFYxXPPU4KbxhFfJ2"


def constant_time_verify(user_password_hash: str | None, password: str) -> bool:
    if user_password_hash:
        return verify_password(password, user_password_hash)
    verify_password(password, _FAKE_HASH)
    return False
