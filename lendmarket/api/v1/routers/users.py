from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.api import deps
from lendmarket.core.security import SessionIdentity
from lendmarket.schemas.users import UserOut, UserRoleUpdate
from lendmarket.services import users as users_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/by-email", response_model=list[UserOut])
async def find_user_by_email(
    email: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> list[UserOut]:
    user = await users_service.find_by_email(db, email)
    return [UserOut.model_validate(user)]


@router.get("/me", response_model=UserOut)
async def read_current_user(
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> UserOut:
    user = await users_service.get_current_user_record(db, identity)
    return UserOut.model_validate(user)


@router.get("", response_model=list[UserOut])
async def list_users(
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
) -> list[UserOut]:
    users = await users_service.list_managed_users(db)
    return [UserOut.model_validate(user) for user in users]


@router.patch("/{user_id}", response_model=UserOut)
async def update_user_role(
    user_id: str,
    payload: UserRoleUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
) -> UserOut:
    user = await users_service.update_role(db, user_id, payload, actor=identity)
    await db.commit()
    return UserOut.model_validate(user)
