from typing import Optional
from uuid import UUID

from pydantic import Field

from lendmarket.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    # Presence is checked by the service so a missing field is a 400, not a 422.
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class RegisterResponse(CamelModel):
    user_id: UUID


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    name: Optional[str] = None
    email: str
    role: str
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    token: str
    token_type: str = "bearer"


class SessionOut(CamelModel):
    email: str
    role: str
    id: Optional[str] = None
