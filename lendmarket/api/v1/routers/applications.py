from typing import Union

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.api import deps
from lendmarket.core.errors import Forbidden
from lendmarket.core.roles import Role
from lendmarket.core.security import SessionIdentity
from lendmarket.schemas.common import MessageResponse
from lendmarket.schemas.loan import (
    LoanApplicationAdminUpdate,
    LoanApplicationApproveRequest,
    LoanApplicationCreate,
    LoanApplicationCreated,
    LoanApplicationOut,
)
from lendmarket.services import loan_applications as ledger
from lendmarket.utils import normalize_email

router = APIRouter(tags=["applications"])

_STAFF_ROLES = (Role.MANAGER.value, Role.ADMIN.value)


def _is_staff(identity: SessionIdentity) -> bool:
    return identity.role in _STAFF_ROLES


def _out(application) -> LoanApplicationOut:
    return LoanApplicationOut.model_validate(application)


@router.post("/apply-loan", response_model=LoanApplicationCreated)
async def apply_loan(
    payload: LoanApplicationCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> LoanApplicationCreated:
    borrower_email = ledger.resolve_borrower_email(payload, identity)
    application = await ledger.submit_application(db, payload, borrower_email)
    await db.commit()
    return LoanApplicationCreated(application_id=application.id)


@router.get("/applications", response_model=list[LoanApplicationOut])
async def list_applications(
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_manager_or_admin),
) -> list[LoanApplicationOut]:
    applications = await ledger.list_applications(db)
    return [_out(application) for application in applications]


@router.get(
    "/applications/{id_or_email}",
    response_model=Union[list[LoanApplicationOut], LoanApplicationOut],
)
async def read_applications(
    id_or_email: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> Union[list[LoanApplicationOut], LoanApplicationOut]:
    """An email lists that borrower's applications; anything else is an application id."""
    if "@" in id_or_email:
        if not _is_staff(identity) and normalize_email(id_or_email) != normalize_email(identity.email):
            raise Forbidden("You can only list your own applications")
        applications = await ledger.list_by_borrower(db, id_or_email)
        return [_out(application) for application in applications]

    application = await ledger.get_application(db, id_or_email)
    if not _is_staff(identity) and not ledger.is_owner(application, identity.email):
        raise Forbidden("You can only view your own applications")
    return _out(application)


@router.patch("/applications/approve/{application_id}", response_model=LoanApplicationOut)
async def approve_application(
    application_id: str,
    payload: LoanApplicationApproveRequest,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
) -> LoanApplicationOut:
    application = await ledger.approve_application(
        db,
        application_id,
        payload.repay_amount,
        payload.deadline,
        actor=identity.email,
    )
    await db.commit()
    return _out(application)


async def _reject(db: AsyncSession, application_id: str, identity: SessionIdentity) -> LoanApplicationOut:
    application = await ledger.reject_application(db, application_id, actor=identity.email)
    await db.commit()
    return _out(application)


@router.patch("/applications/reject/{application_id}", response_model=LoanApplicationOut)
async def reject_application(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
) -> LoanApplicationOut:
    return await _reject(db, application_id, identity)


@router.patch("/applications/{application_id}/reject", response_model=LoanApplicationOut)
async def reject_application_alias(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
) -> LoanApplicationOut:
    return await _reject(db, application_id, identity)


@router.patch("/applications/disburse/{application_id}", response_model=LoanApplicationOut)
async def disburse_application(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
) -> LoanApplicationOut:
    application = await ledger.disburse_application(db, application_id, actor=identity.email)
    await db.commit()
    return _out(application)


@router.patch("/applications/pay/{application_id}", response_model=LoanApplicationOut)
async def pay_application_fee(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> LoanApplicationOut:
    ledger.ensure_owner_or_admin(await ledger.get_application(db, application_id), identity)
    application = await ledger.mark_fee_paid(db, application_id, actor=identity.email)
    await db.commit()
    return _out(application)


@router.patch("/applications/repay/{application_id}", response_model=LoanApplicationOut)
async def repay_application(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> LoanApplicationOut:
    ledger.ensure_owner_or_admin(await ledger.get_application(db, application_id), identity)
    application = await ledger.mark_repaid(db, application_id, actor=identity.email)
    await db.commit()
    return _out(application)


@router.patch("/applications/{application_id}", response_model=LoanApplicationOut)
async def update_application(
    application_id: str,
    payload: LoanApplicationAdminUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.require_admin),
) -> LoanApplicationOut:
    application = await ledger.admin_update(db, application_id, payload, actor=identity.email)
    await db.commit()
    return _out(application)


@router.delete("/applications/{application_id}", response_model=MessageResponse)
async def cancel_application(
    application_id: str,
    db: AsyncSession = Depends(deps.get_db_session),
    identity: SessionIdentity = Depends(deps.get_current_identity),
) -> MessageResponse:
    await ledger.cancel_application(db, application_id, identity.email)
    await db.commit()
    return MessageResponse(message="Application cancelled")
