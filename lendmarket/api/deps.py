from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.core.context import set_actor_email
from lendmarket.core.errors import Forbidden
from lendmarket.core.roles import Role
from lendmarket.core.security import SessionIdentity
from lendmarket.core.settings import settings
from lendmarket.db.session import Database, get_db
from lendmarket.services.auth import authorize_any, verify_session
from lendmarket.services.payment_gateway import PaymentGateway, StripePaymentGateway

# auto_error is off so a missing token reaches verify_session and becomes a 401.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/login", auto_error=False)


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_current_identity(
    token: Optional[str] = Depends(oauth2_scheme),
) -> SessionIdentity:
    identity = verify_session(token)
    set_actor_email(identity.email)
    return identity


def require_role(*roles: Role):
    async def dependency(
        identity: SessionIdentity = Depends(get_current_identity),
    ) -> SessionIdentity:
        if not authorize_any(identity, roles):
            raise Forbidden(
                "Insufficient role",
                details={"required_roles": [role.value for role in roles]},
            )
        return identity

    return dependency


require_admin = require_role(Role.ADMIN)
require_manager_or_admin = require_role(Role.MANAGER, Role.ADMIN)


def get_payment_gateway() -> PaymentGateway:
    return StripePaymentGateway()
