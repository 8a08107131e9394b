from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from lendmarket.core.roles import Role
from lendmarket.schemas.common import CamelModel


class UserOut(CamelModel):
    id: UUID
    name: str
    email: str
    role: str
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    suspend_reason: Optional[str] = None
    suspend_feedback: Optional[str] = None
    created_at: Optional[datetime] = None


class UserRoleUpdate(CamelModel):
    role: Optional[Role] = None
    suspend_reason: Optional[str] = None
    suspend_feedback: Optional[str] = None
