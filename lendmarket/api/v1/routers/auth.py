from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.api import auth_utils, deps
from lendmarket.core.errors import InvalidCredentials
from lendmarket.core.limiter import limiter
from lendmarket.core.security import SessionIdentity
from lendmarket.core.settings import settings
from lendmarket.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    SessionOut,
)
from lendmarket.services import auth as auth_service
from lendmarket.utils import normalize_email

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=RegisterResponse)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(deps.get_db_session),
) -> RegisterResponse:
    user = await auth_service.register(db, payload)
    await db.commit()
    return RegisterResponse(user_id=user.id)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
) -> LoginResponse:
    client_ip = request.client.host if request.client else "unknown"
    email = normalize_email(credentials.email)
    # The configured admin credential is never subject to lockout.
    if not auth_service.is_admin_credential(credentials.email, credentials.password):
        await auth_utils.enforce_login_limits(client_ip, email)
    try:
        result = await auth_service.login(db, credentials.email, credentials.password)
    except InvalidCredentials:
        await auth_utils.record_login_attempt(email, success=False)
        raise
    await auth_utils.record_login_attempt(email, success=True)
    return LoginResponse(
        name=result.name,
        email=result.email,
        role=result.role,
        photo_url=result.photo_url,
        token=result.token,
    )


@router.get("/session", response_model=SessionOut)
async def read_session(
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> SessionOut:
    return SessionOut(email=identity.email, role=identity.role, id=identity.id)
