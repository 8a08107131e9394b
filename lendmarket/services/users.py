from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.core.errors import MissingField, NotFound
from lendmarket.core.roles import MANAGED_ROLES, Role
from lendmarket.core.security import SessionIdentity
from lendmarket.models.user import User
from lendmarket.schemas.users import UserRoleUpdate
from lendmarket.services.audit import model_snapshot, record_audit_event
from lendmarket.services.auth import get_user_by_email
from lendmarket.utils import normalize_email, parse_uuid

logger = logging.getLogger(__name__)

_AUDIT_EXCLUDE = ("hashed_password",)


async def find_by_email(db: AsyncSession, email: str | None) -> User:
    if not normalize_email(email):
        raise MissingField("Email is required")
    user = await get_user_by_email(db, email)
    if user is None:
        raise NotFound("User not found")
    return user


async def get_current_user_record(db: AsyncSession, identity: SessionIdentity) -> User:
    user = await get_user_by_email(db, identity.email)
    if user is None:
        raise NotFound("User not found")
    return user


async def list_managed_users(db: AsyncSession) -> list[User]:
    stmt = select(User).where(User.role.in_(MANAGED_ROLES)).order_by(User.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_role(
    db: AsyncSession,
    user_id: str,
    payload: UserRoleUpdate,
    *,
    actor: SessionIdentity,
) -> User:
    if payload.role is None:
        raise MissingField("Role is required")
    user = await db.get(User, parse_uuid(user_id, label="user ID"))
    if user is None:
        raise NotFound("User not found")

    old_snapshot = model_snapshot(user, exclude=_AUDIT_EXCLUDE)
    user.role = payload.role.value
    if payload.role is Role.SUSPENDED:
        user.suspend_reason = payload.suspend_reason or ""
        user.suspend_feedback = payload.suspend_feedback or ""
    else:
        user.suspend_reason = None
        user.suspend_feedback = None
    user.updated_at = datetime.now(timezone.utc)
    db.add(user)
    await db.flush()
    await db.refresh(user)

    record_audit_event(
        action="user.role_updated",
        actor=actor.email,
        resource_type="user",
        resource_id=user.id,
        old_value=old_snapshot,
        new_value=model_snapshot(user, exclude=_AUDIT_EXCLUDE),
    )
    return user
