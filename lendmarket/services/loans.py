from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lendmarket.core.errors import NotFound
from lendmarket.core.security import SessionIdentity
from lendmarket.models.loan import Loan
from lendmarket.schemas.loan import LoanCreate, LoanUpdate
from lendmarket.services.audit import model_snapshot, record_audit_event
from lendmarket.utils import parse_uuid

logger = logging.getLogger(__name__)


async def list_loans(db: AsyncSession) -> list[Loan]:
    stmt = select(Loan).order_by(Loan.created_at.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_loan(db: AsyncSession, loan_id: str) -> Loan:
    loan = await db.get(Loan, parse_uuid(loan_id, label="loan ID"))
    if loan is None:
        raise NotFound("Loan not found")
    return loan


async def create_loan(db: AsyncSession, payload: LoanCreate, *, actor: SessionIdentity) -> Loan:
    loan = Loan(
        **payload.model_dump(),
        created_by=actor.email,
        created_at=datetime.now(timezone.utc),
    )
    db.add(loan)
    await db.flush()
    record_audit_event(
        action="loan.created",
        actor=actor.email,
        resource_type="loan",
        resource_id=loan.id,
        new_value=model_snapshot(loan),
    )
    return loan


async def update_loan(
    db: AsyncSession,
    loan_id: str,
    payload: LoanUpdate,
    *,
    actor: SessionIdentity,
) -> Loan:
    loan = await get_loan(db, loan_id)
    old_snapshot = model_snapshot(loan)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(loan, field, value)
    loan.updated_at = datetime.now(timezone.utc)
    db.add(loan)
    await db.flush()
    record_audit_event(
        action="loan.updated",
        actor=actor.email,
        resource_type="loan",
        resource_id=loan.id,
        old_value=old_snapshot,
        new_value=model_snapshot(loan),
    )
    return loan


async def delete_loan(db: AsyncSession, loan_id: str, *, actor: SessionIdentity) -> None:
    loan = await get_loan(db, loan_id)
    old_snapshot = model_snapshot(loan)
    await db.delete(loan)
    await db.flush()
    record_audit_event(
        action="loan.deleted",
        actor=actor.email,
        resource_type="loan",
        resource_id=loan.id,
        old_value=old_snapshot,
    )
