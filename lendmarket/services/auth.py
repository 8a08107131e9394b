"""Registration, login and session checks.

Login failure for an unknown email and for a wrong password is reported with
the same ``InvalidCredentials`` error so callers cannot probe which accounts
exist.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.core.errors import (
    AccountSuspended,
    DuplicateEmail,
    Forbidden,
    InvalidCredentials,
    MissingField,
    Unauthenticated,
    ValidationError,
)
from lendmarket.core.roles import SELF_REGISTRATION_ROLES, Role, is_suspended, role_values
from lendmarket.core.security import (
    ExpiredTokenError,
    SessionIdentity,
    TokenError,
    constant_time_verify,
    create_session_token,
    decode_session_token,
    get_password_hash,
)
from lendmarket.core.settings import settings
from lendmarket.models.user import User
from lendmarket.schemas.auth import RegisterRequest
from lendmarket.utils import normalize_email

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)


@dataclass(slots=True)
class LoginResult:
    email: str
    role: str
    token: str
    name: str | None = None
    photo_url: str | None = None
    user_id: str | None = None


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == normalize_email(email))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def register(db: AsyncSession, payload: RegisterRequest) -> User:
    missing = [
        field
        for field, value in (
            ("name", payload.name),
            ("email", payload.email),
            ("password", payload.password),
        )
        if not value or not str(value).strip()
    ]
    if missing:
        raise MissingField(details={"missing_fields": missing})

    role = Role.normalize(payload.role) if payload.role else Role.BORROWER
    if role not in SELF_REGISTRATION_ROLES:
        raise ValidationError(
            "Role cannot be chosen at registration",
            details={"allowed_roles": sorted(role_values(SELF_REGISTRATION_ROLES))},
        )

    email = normalize_email(payload.email)
    try:
        _email_adapter.validate_python(email)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid email address", details={"email": payload.email}) from exc
    if await get_user_by_email(db, email) is not None:
        raise DuplicateEmail()

    try:
        hashed_password = get_password_hash(payload.password)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    user = User(
        name=payload.name.strip(),
        email=email,
        hashed_password=hashed_password,
        role=role.value,
        photo_url=payload.photo_url,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email.
        await db.rollback()
        raise DuplicateEmail() from exc
    logger.info("User registered id=%s role=%s", user.id, user.role)
    return user


def is_admin_credential(email: str, password: str) -> bool:
    admin_email = settings.admin_email
    admin_password = settings.admin_password
    if not admin_email or not admin_password:
        return False
    email_ok = secrets.compare_digest(email.encode("utf-8"), admin_email.encode("utf-8"))
    password_ok = secrets.compare_digest(
        password.encode("utf-8"), admin_password.encode("utf-8")
    )
    return email_ok and password_ok


async def login(db: AsyncSession, email: str, password: str) -> LoginResult:
    if is_admin_credential(email, password):
        token = create_session_token(email=email, role=Role.ADMIN.value)
        logger.info("Admin session issued via configured credential")
        return LoginResult(email=email, role=Role.ADMIN.value, token=token)

    user = await get_user_by_email(db, email)
    if user is None:
        constant_time_verify(None, password)
        raise InvalidCredentials()

    if is_suspended(user.role):
        raise AccountSuspended()

    if not constant_time_verify(user.hashed_password, password):
        raise InvalidCredentials()

    user_id = str(user.id)
    token = create_session_token(email=user.email, role=user.role, user_id=user_id)
    return LoginResult(
        email=user.email,
        role=user.role,
        token=token,
        name=user.name,
        photo_url=user.photo_url,
        user_id=user_id,
    )


def verify_session(token: str | None) -> SessionIdentity:
    if not token:
        raise Unauthenticated()
    try:
        return decode_session_token(token)
    except ExpiredTokenError as exc:
        raise Forbidden("Session expired") from exc
    except TokenError as exc:
        raise Forbidden() from exc


def authorize(identity: SessionIdentity, required_role: Role | str) -> bool:
    required = required_role.value if isinstance(required_role, Role) else str(required_role)
    return identity.role == required


def authorize_any(identity: SessionIdentity, roles: Iterable[Role | str]) -> bool:
    return identity.role in role_values(roles)
