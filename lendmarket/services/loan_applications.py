"""Loan application ledger.

Lifecycle::

    pending --approve--> approved --disburse--> disbursed
    pending --reject---> rejected

``approve`` may be repeated while the application is still ``approved`` to
amend the repayment terms. ``rejected`` is terminal, as is ``disbursed`` once
the repayment is settled. Fee and repayment flags only ever move to ``paid``.

Each operation loads one row, mutates it and flushes; the caller owns the
commit. Concurrent writers on the same row resolve as last-write-wins.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.core.errors import Forbidden, InvalidTransition, NotFound
from lendmarket.core.roles import Role
from lendmarket.core.security import SessionIdentity
from lendmarket.models.loan_application import LoanApplication
from lendmarket.schemas.loan import (
    FeeStatus,
    LoanApplicationAdminUpdate,
    LoanApplicationCreate,
    LoanApplicationStatus,
    RepayStatus,
)
from lendmarket.services.audit import model_snapshot, record_audit_event
from lendmarket.utils import normalize_email, parse_uuid

logger = logging.getLogger(__name__)

PENDING = LoanApplicationStatus.PENDING.value
APPROVED = LoanApplicationStatus.APPROVED.value
DISBURSED = LoanApplicationStatus.DISBURSED.value
REJECTED = LoanApplicationStatus.REJECTED.value

# Statuses from which each transition may start.
_APPROVABLE = frozenset({PENDING, APPROVED})
_REPAYABLE = frozenset({APPROVED, DISBURSED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _invalid_transition(application: LoanApplication, action: str) -> InvalidTransition:
    return InvalidTransition(
        f"Cannot {action} an application that is {application.status}",
        details={"status": application.status, "action": action},
    )


def _audit(action: str, application: LoanApplication, old_snapshot: dict, actor: str | None) -> None:
    record_audit_event(
        action=f"loan_application.{action}",
        actor=actor,
        resource_type="loan_application",
        resource_id=application.id,
        old_value=old_snapshot,
        new_value=model_snapshot(application),
    )


def is_terminal(application: LoanApplication) -> bool:
    if application.status == REJECTED:
        return True
    return application.status == DISBURSED and application.repay_status == RepayStatus.PAID.value


def is_owner(application: LoanApplication, email: str | None) -> bool:
    return normalize_email(application.borrower_email) == normalize_email(email)


def ensure_owner_or_admin(application: LoanApplication, identity: SessionIdentity) -> None:
    if identity.role == Role.ADMIN.value or is_owner(application, identity.email):
        return
    raise Forbidden("Only the borrower or an admin can act on this application")


def resolve_borrower_email(payload: LoanApplicationCreate, identity: SessionIdentity) -> str:
    """Borrower email for a new application; defaults to the session's email."""
    requested = normalize_email(payload.borrower_email)
    if not requested:
        return normalize_email(identity.email)
    if requested != normalize_email(identity.email) and identity.role != Role.ADMIN.value:
        raise Forbidden("Applications can only be submitted for your own account")
    return requested


async def get_application(db: AsyncSession, application_id: str) -> LoanApplication:
    application = await db.get(LoanApplication, parse_uuid(application_id, label="application ID"))
    if application is None:
        raise NotFound("Application not found")
    return application


async def list_applications(db: AsyncSession) -> list[LoanApplication]:
    stmt = select(LoanApplication).order_by(LoanApplication.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_by_borrower(db: AsyncSession, email: str | None) -> list[LoanApplication]:
    normalized = normalize_email(email)
    if not normalized:
        return []
    stmt = (
        select(LoanApplication)
        .where(func.lower(LoanApplication.borrower_email) == normalized)
        .order_by(LoanApplication.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def submit_application(
    db: AsyncSession,
    payload: LoanApplicationCreate,
    borrower_email: str,
) -> LoanApplication:
    application = LoanApplication(
        borrower_email=normalize_email(borrower_email),
        loan_id=payload.loan_id,
        loan_title=payload.loan_title,
        loan_amount=payload.loan_amount,
        full_name=payload.full_name,
        details=payload.extra_fields(),
        status=PENDING,
        fee_status=FeeStatus.UNPAID.value,
        repay_status=None,
        created_at=_utcnow(),
    )
    db.add(application)
    await db.flush()
    logger.info(
        "Loan application submitted id=%s loan_id=%s", application.id, application.loan_id
    )
    return application


async def approve_application(
    db: AsyncSession,
    application_id: str,
    repay_amount: Decimal | None,
    deadline: date | None,
    *,
    actor: str | None = None,
) -> LoanApplication:
    missing = [
        name
        for name, value in (("repayAmount", repay_amount), ("deadline", deadline))
        if value is None
    ]
    if missing:
        raise InvalidTransition("repayAmount & deadline required", details={"missing_fields": missing})
    if repay_amount <= 0:
        raise InvalidTransition(
            "repayAmount must be positive", details={"repayAmount": str(repay_amount)}
        )

    application = await get_application(db, application_id)
    if application.status not in _APPROVABLE:
        raise _invalid_transition(application, "approve")

    old_snapshot = model_snapshot(application)
    application.status = APPROVED
    application.repay_amount = repay_amount
    application.deadline = deadline
    if application.repay_status != RepayStatus.PAID.value:
        application.repay_status = RepayStatus.UNPAID.value
    application.approved_at = _utcnow()
    db.add(application)
    await db.flush()
    _audit("approved", application, old_snapshot, actor)
    return application


async def disburse_application(
    db: AsyncSession,
    application_id: str,
    *,
    actor: str | None = None,
) -> LoanApplication:
    application = await get_application(db, application_id)
    if application.status == DISBURSED:
        return application
    if application.status != APPROVED:
        raise _invalid_transition(application, "disburse")

    old_snapshot = model_snapshot(application)
    application.status = DISBURSED
    if application.repay_status is None:
        application.repay_status = RepayStatus.UNPAID.value
    application.disbursed_at = _utcnow()
    db.add(application)
    await db.flush()
    _audit("disbursed", application, old_snapshot, actor)
    return application


async def reject_application(
    db: AsyncSession,
    application_id: str,
    *,
    actor: str | None = None,
) -> LoanApplication:
    application = await get_application(db, application_id)
    if application.status == REJECTED:
        return application
    if application.status != PENDING:
        raise _invalid_transition(application, "reject")

    old_snapshot = model_snapshot(application)
    application.status = REJECTED
    db.add(application)
    await db.flush()
    _audit("rejected", application, old_snapshot, actor)
    return application


async def mark_fee_paid(
    db: AsyncSession,
    application_id: str,
    *,
    actor: str | None = None,
) -> LoanApplication:
    """Record a confirmed fee payment. The caller has verified the funds."""
    application = await get_application(db, application_id)
    if (
        application.fee_status == FeeStatus.PAID.value
        and application.repay_status == RepayStatus.PAID.value
    ):
        return application

    old_snapshot = model_snapshot(application)
    application.fee_status = FeeStatus.PAID.value
    application.repay_status = RepayStatus.PAID.value
    if application.paid_at is None:
        application.paid_at = _utcnow()
    db.add(application)
    await db.flush()
    _audit("fee_paid", application, old_snapshot, actor)
    return application


async def mark_repaid(
    db: AsyncSession,
    application_id: str,
    *,
    actor: str | None = None,
) -> LoanApplication:
    """Record a confirmed repayment. The caller has verified the funds."""
    application = await get_application(db, application_id)
    if application.repay_status == RepayStatus.PAID.value:
        return application
    if application.status not in _REPAYABLE:
        raise _invalid_transition(application, "repay")

    old_snapshot = model_snapshot(application)
    application.repay_status = RepayStatus.PAID.value
    application.repaid_at = _utcnow()
    db.add(application)
    await db.flush()
    _audit("repaid", application, old_snapshot, actor)
    return application


async def cancel_application(
    db: AsyncSession,
    application_id: str,
    requester_email: str,
) -> None:
    application = await get_application(db, application_id)
    if not is_owner(application, requester_email):
        raise Forbidden("Only the borrower can cancel this application")
    if application.status != PENDING:
        raise _invalid_transition(application, "cancel")

    old_snapshot = model_snapshot(application)
    await db.delete(application)
    await db.flush()
    _audit("cancelled", application, old_snapshot, requester_email)


async def admin_update(
    db: AsyncSession,
    application_id: str,
    payload: LoanApplicationAdminUpdate,
    *,
    actor: str | None = None,
) -> LoanApplication:
    """Annotate an application.

    Status is owned by the named transitions; a ``status`` here is accepted
    only when it matches the current one.
    """
    application = await get_application(db, application_id)
    updates: dict[str, Any] = payload.model_dump(mode="json", exclude_unset=True, exclude_none=True)

    status = updates.pop("status", None)
    if status is not None and status != application.status:
        raise InvalidTransition(
            "Status changes go through approve, reject, disburse or cancel",
            details={"status": application.status, "requested": status},
        )

    fee_status = updates.pop("fee_status", None)
    if (
        fee_status == FeeStatus.UNPAID.value
        and application.fee_status == FeeStatus.PAID.value
    ):
        raise InvalidTransition(
            "Fee status cannot move back to unpaid",
            details={"fee_status": application.fee_status},
        )

    old_snapshot = model_snapshot(application)
    if fee_status is not None:
        application.fee_status = fee_status
        if fee_status == FeeStatus.PAID.value and application.paid_at is None:
            application.paid_at = _utcnow()
    if "comments" in updates:
        application.comments = updates["comments"]
    application.updated_at = _utcnow()
    db.add(application)
    await db.flush()
    _audit("admin_updated", application, old_snapshot, actor)
    return application
